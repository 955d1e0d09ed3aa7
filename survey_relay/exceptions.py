"""
Custom Exceptions for the Survey Relay

Each exception maps to one HTTP status in the submit handler. Body decode
failures have no exception here: the decoder recovers from them itself.
"""

from dataclasses import dataclass
from typing import Any

MISSING_CONFIGURATION_MESSAGE = (
    "Missing environment variables. Please configure BREVO_API_KEY, TO_EMAIL, FROM_EMAIL."
)


class SurveyRelayError(Exception):
    """Base exception for the survey relay."""

    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def to_response_body(self) -> dict[str, Any]:
        """JSON body returned to the caller."""
        return {"error": self.message}


@dataclass
class MethodNotAllowedError(SurveyRelayError):
    """Request method other than POST."""

    method: str

    status_code = 405

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__("Method Not Allowed", method=method)


@dataclass
class ConfigurationMissingError(SurveyRelayError):
    """Required Brevo configuration is absent."""

    missing: list[str]

    status_code = 500

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(MISSING_CONFIGURATION_MESSAGE, missing=missing)


@dataclass
class ProviderDispatchError(SurveyRelayError):
    """Brevo answered with a non-success status."""

    provider_status: int
    details: str

    status_code = 502

    def __init__(self, provider_status: int, details: str) -> None:
        self.provider_status = provider_status
        self.details = details
        super().__init__(
            "Brevo API error",
            provider_status=provider_status,
        )

    def to_response_body(self) -> dict[str, Any]:
        return {"error": self.message, "details": self.details}
