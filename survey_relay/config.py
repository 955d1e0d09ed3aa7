"""
Configuration Management

Pydantic-settings based configuration for the survey submission relay.
The three Brevo values keep their historical unprefixed environment names
(BREVO_API_KEY, TO_EMAIL, FROM_EMAIL, SITE_NAME); everything else is
prefixed with SURVEY_RELAY_.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SITE_NAME = "顧客滿意度調查"
BREVO_SMTP_EMAIL_URL = "https://api.brevo.com/v3/smtp/email"

# Field name -> environment variable reported when the value is missing
REQUIRED_ENV_VARS = {
    "brevo_api_key": "BREVO_API_KEY",
    "to_email": "TO_EMAIL",
    "from_email": "FROM_EMAIL",
}


class Settings(BaseSettings):
    """
    Relay settings loaded from environment variables.

    Required values are optional at load time so a half-configured
    deployment still answers with a JSON error instead of crashing on import.
    Use missing_required() to check them per request.
    """

    model_config = SettingsConfigDict(
        env_prefix="SURVEY_RELAY_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Brevo Configuration
    brevo_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BREVO_API_KEY", "SURVEY_RELAY_BREVO_API_KEY"),
        description="Brevo API key sent in the api-key header",
    )
    to_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TO_EMAIL", "SURVEY_RELAY_TO_EMAIL"),
        description="Recipient of the notification emails",
    )
    from_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FROM_EMAIL", "SURVEY_RELAY_FROM_EMAIL"),
        description="Verified Brevo sender address",
    )
    site_name: str = Field(
        default=DEFAULT_SITE_NAME,
        validation_alias=AliasChoices("SITE_NAME", "SURVEY_RELAY_SITE_NAME"),
        description="Display name used in the subject and sender name",
    )
    brevo_api_url: str = Field(
        default=BREVO_SMTP_EMAIL_URL,
        description="Brevo transactional email endpoint",
    )
    brevo_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for the outbound Brevo call",
    )

    # Rendering Configuration
    render_mode: Literal["dynamic", "fixed"] = Field(
        default="dynamic",
        description="dynamic renders every submitted field, fixed renders the questionnaire schema",
    )
    include_payload_dump: bool | None = Field(
        default=None,
        description="Append a JSON dump of the payload (None = renderer default)",
    )

    # Application Configuration
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        description="Log rendered emails instead of sending them (local server only)",
    )

    @field_validator("brevo_api_key", "to_email", "from_email", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("to_email", "from_email")
    @classmethod
    def _normalize_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        from email_validator import EmailNotValidError, validate_email

        try:
            return validate_email(value, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email address '{value}': {e}") from e

    def missing_required(self) -> list[str]:
        """Environment variable names of required values that are unset."""
        return [
            env_name
            for field_name, env_name in REQUIRED_ENV_VARS.items()
            if not getattr(self, field_name)
        ]

    @property
    def is_complete(self) -> bool:
        return not self.missing_required()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached relay settings.

    Only the hosting boundary should call this; the relay itself takes a
    Settings instance. Call get_settings.cache_clear() in tests after
    changing the environment.
    """
    return Settings()
