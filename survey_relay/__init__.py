# Shared Infrastructure for the Survey Relay
"""
Shared infrastructure for the survey submission relay.

This package provides:
- Configuration management (pydantic-settings)
- Models for decoded submissions, rendered emails and the Brevo envelope
- The Brevo email dispatcher
- Custom exceptions mapped to HTTP statuses
"""

from survey_relay.config import Settings, get_settings
from survey_relay.exceptions import (
    ConfigurationMissingError,
    MethodNotAllowedError,
    ProviderDispatchError,
    SurveyRelayError,
)
from survey_relay.models import (
    BrevoSendRequest,
    DispatchResult,
    RenderedEmail,
    SubmissionPayload,
    freeze_payload,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "SurveyRelayError",
    "MethodNotAllowedError",
    "ConfigurationMissingError",
    "ProviderDispatchError",
    # Models
    "BrevoSendRequest",
    "DispatchResult",
    "RenderedEmail",
    "SubmissionPayload",
    "freeze_payload",
]
