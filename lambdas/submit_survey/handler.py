"""
SubmitSurvey Lambda Handler

Main entry point for survey form submissions.
Decodes the posted form, renders a notification email and relays it
through Brevo.

Trigger: API Gateway (REST or HTTP API) or a Lambda Function URL, proxy integration
Output: One Brevo transactional email per accepted submission

Flow:
1. Reject anything but POST (405)
2. Check Brevo configuration (500 when incomplete)
3. Decode the body (JSON, urlencoded or multipart, never fails)
4. Render subject and HTML with the configured renderer
5. Send through Brevo (502 on a provider error)
6. Answer {"ok": true}
"""

import base64
import binascii
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from lambdas.submit_survey.body_decoder import decode_body
from lambdas.submit_survey.renderers import TableRenderer, renderer_from_settings
from survey_relay.config import Settings, get_settings
from survey_relay.exceptions import (
    ConfigurationMissingError,
    MethodNotAllowedError,
    SurveyRelayError,
)
from survey_relay.models import BrevoSendRequest
from survey_relay.tools.brevo import BrevoEmailDispatcher, EmailDispatcher

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()

JSON_HEADERS = {"content-type": "application/json"}

# Leave this much of the Lambda budget for building the response
TIMEOUT_SAFETY_MARGIN_SECONDS = 1.0


@dataclass(frozen=True)
class InboundRequest:
    """Transport-neutral view of an HTTP request."""

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "headers", {k.lower(): v for k, v in self.headers.items()}
        )

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")


@dataclass(frozen=True)
class RelayResponse:
    """Status, JSON body and headers to send back."""

    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))

    @classmethod
    def error(cls, status_code: int, body: dict[str, Any]) -> "RelayResponse":
        return cls(status_code=status_code, body=body)

    def to_lambda_response(self) -> dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": json.dumps(self.body, ensure_ascii=False),
        }


def ensure_post(method: str) -> None:
    """Raise MethodNotAllowedError for anything but POST (case-insensitive)."""
    method = method.upper()
    if method != "POST":
        log.info("method_not_allowed", method=method)
        raise MethodNotAllowedError(method)


class SubmissionRelay:
    """
    Request -> email -> response for one survey submission.

    Usage:
        relay = SubmissionRelay(settings)
        response = relay.handle(InboundRequest(method="POST", headers=..., body=...))

    The relay holds no per-request state; settings, dispatcher and renderer
    are fixed at construction.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dispatcher: EmailDispatcher | None = None,
        renderer: TableRenderer | None = None,
    ) -> None:
        self._settings = settings
        self._dispatcher = dispatcher
        self._renderer = renderer or renderer_from_settings(settings)
        self._log = log.bind(environment=settings.environment)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def renderer(self) -> TableRenderer:
        return self._renderer

    def _get_dispatcher(self) -> EmailDispatcher:
        if self._dispatcher is None:
            self._dispatcher = BrevoEmailDispatcher.from_settings(self._settings)
        return self._dispatcher

    def handle(self, request: InboundRequest) -> RelayResponse:
        """
        Process one request. Never raises.

        Args:
            request: Inbound HTTP request

        Returns:
            RelayResponse with 200, 405, 500 or 502
        """
        try:
            return self._relay(request)
        except SurveyRelayError as e:
            return RelayResponse.error(e.status_code, e.to_response_body())
        except Exception as e:
            self._log.error("relay_handler_failed", error=str(e), exc_info=True)
            return RelayResponse.error(500, {"error": str(e)})

    def _relay(self, request: InboundRequest) -> RelayResponse:
        ensure_post(request.method)

        missing = self._settings.missing_required()
        if missing:
            self._log.error("configuration_missing", missing=missing)
            raise ConfigurationMissingError(missing)

        payload = decode_body(request.body, request.content_type)

        self._log.info(
            "submission_decoded",
            content_type=request.content_type,
            field_count=len(payload),
            fields=list(payload.keys()),
        )

        email = self._renderer.render(payload)
        send_request = BrevoSendRequest.build(
            email,
            from_email=self._settings.from_email,
            to_email=self._settings.to_email,
            sender_name=self._settings.site_name,
        )

        result = self._get_dispatcher().send(send_request)

        self._log.info(
            "submission_relayed",
            renderer=self._renderer.name,
            message_id=result.message_id,
        )

        return RelayResponse(
            status_code=200,
            body={"ok": True},
            headers={**JSON_HEADERS, "cache-control": "no-store"},
        )


def _event_method(event: dict[str, Any]) -> str:
    """HTTP method from a REST (v1) or HTTP API / Function URL (v2) event."""
    if event.get("httpMethod"):
        return str(event["httpMethod"])
    http = (event.get("requestContext") or {}).get("http") or {}
    return str(http.get("method", ""))


def _event_body(event: dict[str, Any]) -> bytes:
    body = event.get("body")
    if body is None:
        return b""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body)
        except (binascii.Error, ValueError):
            log.warning("invalid_base64_body", body_length=len(body))
            return b""
    return body.encode("utf-8")


def request_from_event(event: dict[str, Any]) -> InboundRequest:
    """Build an InboundRequest from an API Gateway proxy event."""
    headers = event.get("headers") or {}
    return InboundRequest(
        method=_event_method(event),
        headers={str(k): str(v) for k, v in headers.items() if v is not None},
        body=_event_body(event),
    )


def _remaining_seconds(context: Any) -> float | None:
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if not callable(get_remaining):
        return None
    return max(get_remaining() / 1000 - TIMEOUT_SAFETY_MARGIN_SECONDS, 0.1)


def build_relay(
    settings: Settings,
    context: Any = None,
    *,
    dispatcher_factory: Callable[..., EmailDispatcher] | None = None,
) -> SubmissionRelay:
    """Relay whose Brevo timeout also fits in the remaining Lambda time."""
    factory = dispatcher_factory or BrevoEmailDispatcher.from_settings
    dispatcher = factory(settings, timeout_seconds=_remaining_seconds(context))
    return SubmissionRelay(settings, dispatcher=dispatcher)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for survey submissions.

    Args:
        event: API Gateway / Function URL proxy event
        context: Lambda context

    Returns:
        Proxy response dict with statusCode, headers and JSON body
    """
    request_id = getattr(context, "aws_request_id", "local")

    try:
        request = request_from_event(event)

        log.info(
            "submission_received",
            request_id=request_id,
            method=request.method,
            content_type=request.content_type,
            body_length=len(request.body),
        )

        # Settings are validated on load; a non-POST is answered first
        ensure_post(request.method)

        settings = get_settings()
        logging.getLogger().setLevel(settings.log_level)
        relay = build_relay(settings, context)
        response = relay.handle(request)

    except SurveyRelayError as e:
        response = RelayResponse.error(e.status_code, e.to_response_body())
    except Exception as e:
        log.error("lambda_handler_failed", request_id=request_id, error=str(e), exc_info=True)
        response = RelayResponse.error(500, {"error": str(e)})

    log.info("submission_handled", request_id=request_id, status_code=response.status_code)
    return response.to_lambda_response()
