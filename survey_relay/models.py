"""
Relay Models

The decoded submission, the rendered email and the Brevo send envelope.
The Brevo models serialize by alias to the camelCase body documented for
POST /v3/smtp/email.
"""

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

FieldValue: TypeAlias = str | tuple[str, ...]
SubmissionPayload: TypeAlias = Mapping[str, FieldValue]


def coerce_field_value(value: Any) -> FieldValue:
    """
    Normalize a decoded value to a string or a tuple of strings.

    JSON scalars become their text form (booleans as true/false, null as an
    empty string), nested objects become compact JSON text.
    """
    if isinstance(value, (list, tuple)):
        return tuple(_coerce_scalar(item) for item in value)
    return _coerce_scalar(value)


def _coerce_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def freeze_payload(fields: Mapping[str, Any]) -> SubmissionPayload:
    """Build a read-only payload, preserving key order."""
    return MappingProxyType(
        {str(key): coerce_field_value(value) for key, value in fields.items()}
    )


EMPTY_PAYLOAD: SubmissionPayload = MappingProxyType({})


def field_text(value: FieldValue | None) -> str:
    """Display text for a payload value; repeated values are joined."""
    if value is None:
        return ""
    if isinstance(value, tuple):
        return ", ".join(value)
    return value


class RenderedEmail(BaseModel):
    """Subject and HTML body derived from a submission."""

    model_config = ConfigDict(frozen=True)

    subject: str = Field(..., min_length=1)
    html_body: str = Field(..., min_length=1)


class BrevoContact(BaseModel):
    """Sender or recipient in a Brevo envelope."""

    model_config = ConfigDict(frozen=True)

    email: str
    name: str | None = None


class BrevoSendRequest(BaseModel):
    """Body of a Brevo transactional email send."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: BrevoContact
    to: list[BrevoContact] = Field(..., min_length=1)
    subject: str
    html_content: str = Field(..., alias="htmlContent")

    @classmethod
    def build(
        cls,
        email: RenderedEmail,
        *,
        from_email: str,
        to_email: str,
        sender_name: str,
    ) -> "BrevoSendRequest":
        return cls(
            sender=BrevoContact(email=from_email, name=sender_name),
            to=[BrevoContact(email=to_email)],
            subject=email.subject,
            html_content=email.html_body,
        )

    def to_api_body(self) -> dict[str, Any]:
        """JSON body for the API call (aliases, no null fields)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DispatchResult(BaseModel):
    """Outcome of a successful send."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    message_id: str | None = None
