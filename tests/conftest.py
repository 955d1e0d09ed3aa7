"""
Pytest Configuration and Shared Fixtures

Provides relay settings, a fake Brevo API (httpx.MockTransport), sample
submissions and Lambda events.
"""

import json
import os
from datetime import datetime, timezone
from typing import Any, Callable, Generator

import httpx
import pytest

# Set test environment before importing application modules
os.environ["BREVO_API_KEY"] = "test-brevo-key"
os.environ["TO_EMAIL"] = "owner@example.com"
os.environ["FROM_EMAIL"] = "no-reply@example.com"
os.environ["SITE_NAME"] = "滿意度"
os.environ.pop("SURVEY_RELAY_RENDER_MODE", None)
os.environ.pop("SURVEY_RELAY_INCLUDE_PAYLOAD_DUMP", None)
os.environ.pop("SURVEY_RELAY_DRY_RUN", None)

from survey_relay.config import Settings, get_settings  # noqa: E402
from survey_relay.tools.brevo import BrevoEmailDispatcher  # noqa: E402
from tests.utils.event_generator import SubmissionEventGenerator  # noqa: E402


# --- Time Fixtures ---


@pytest.fixture
def frozen_datetime() -> datetime:
    """Fixed datetime for deterministic tests."""
    return datetime(2025, 2, 6, 8, 30, 15, 123000, tzinfo=timezone.utc)


@pytest.fixture
def frozen_clock(frozen_datetime: datetime) -> Callable[[], datetime]:
    return lambda: frozen_datetime


# --- Settings Fixtures ---


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Settings are cached per process; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Complete relay settings, independent of the environment."""
    return Settings(
        _env_file=None,
        brevo_api_key="test-brevo-key",
        to_email="owner@example.com",
        from_email="no-reply@example.com",
        site_name="滿意度",
        render_mode="dynamic",
    )


@pytest.fixture
def fixed_settings(settings: Settings) -> Settings:
    return settings.model_copy(update={"render_mode": "fixed"})


# --- Brevo Fixtures ---


class FakeBrevo:
    """Records requests and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 201
        self.response_body: str = json.dumps({"messageId": "<202502060830.123@smtp-relay.mailin.fr>"})

    def fail_with(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.response_body = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.response_body)

    @property
    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def fake_brevo() -> FakeBrevo:
    return FakeBrevo()


@pytest.fixture
def brevo_client(fake_brevo: FakeBrevo) -> Generator[httpx.Client, None, None]:
    with httpx.Client(transport=httpx.MockTransport(fake_brevo.handler)) as client:
        yield client


@pytest.fixture
def dispatcher(settings: Settings, brevo_client: httpx.Client) -> BrevoEmailDispatcher:
    return BrevoEmailDispatcher.from_settings(settings, client=brevo_client)


# --- Submission Fixtures ---


@pytest.fixture
def generator() -> SubmissionEventGenerator:
    return SubmissionEventGenerator(seed=42)


@pytest.fixture
def questionnaire_fields() -> dict[str, str]:
    """A complete questionnaire answer."""
    return {
        "customer_name": "王小明",
        "q1": "非常滿意",
        "q2": "乾淨",
        "q2_extra": "浴室很亮",
        "q3": "5",
        "q4": "8",
        "q5": "會",
        "q6": "謝謝\n下次再約",
        "userAgent": "Mozilla/5.0 (iPhone)",
        "submittedAt": "2025-02-06T08:00:00.000Z",
    }
