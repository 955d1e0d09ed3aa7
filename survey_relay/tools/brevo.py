"""
Brevo Email Tools

Single-attempt delivery of rendered emails through the Brevo transactional
email API. No retries: a failed send is reported to the caller as is.
"""

from typing import Protocol

import httpx
import structlog

from survey_relay.config import Settings
from survey_relay.exceptions import ProviderDispatchError
from survey_relay.models import BrevoSendRequest, DispatchResult

log = structlog.get_logger()


class EmailDispatcher(Protocol):
    """Anything that can deliver a BrevoSendRequest."""

    def send(self, request: BrevoSendRequest) -> DispatchResult: ...


class BrevoEmailDispatcher:
    """
    Sends emails with POST /v3/smtp/email.

    Usage:
        dispatcher = BrevoEmailDispatcher(api_key=settings.brevo_api_key)
        result = dispatcher.send(request)

    Pass an httpx.Client to reuse connections or to swap the transport in
    tests; otherwise a client is created and closed per send.
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.brevo.com/v3/smtp/email",
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        timeout_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> "BrevoEmailDispatcher":
        """Build a dispatcher from settings, optionally tightening the timeout."""
        timeout = settings.brevo_timeout_seconds
        if timeout_seconds is not None:
            timeout = min(timeout, timeout_seconds)
        return cls(
            api_key=settings.brevo_api_key or "",
            api_url=settings.brevo_api_url,
            timeout_seconds=timeout,
            client=client,
        )

    @property
    def timeout(self) -> httpx.Timeout:
        return self._timeout

    def _headers(self) -> dict[str, str]:
        return {
            "api-key": self._api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }

    def send(self, request: BrevoSendRequest) -> DispatchResult:
        """
        Send one email.

        Args:
            request: Brevo envelope with sender, recipients, subject and HTML

        Returns:
            DispatchResult with the Brevo messageId when one is returned

        Raises:
            ProviderDispatchError: Brevo answered with a non-2xx status
            httpx.HTTPError: The request could not be completed (timeout, DNS, ...)
        """
        recipients = [contact.email for contact in request.to]

        log.info(
            "sending_brevo_email",
            to=recipients,
            subject=request.subject[:50],
        )

        if self._client is not None:
            response = self._post(self._client, request)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                response = self._post(client, request)

        if not response.is_success:
            log.error(
                "brevo_send_failed",
                to=recipients,
                status_code=response.status_code,
                details=response.text[:500],
            )
            raise ProviderDispatchError(
                provider_status=response.status_code,
                details=response.text,
            )

        message_id = _extract_message_id(response)

        log.info(
            "brevo_email_sent",
            message_id=message_id,
            status_code=response.status_code,
            to=recipients,
        )

        return DispatchResult(status_code=response.status_code, message_id=message_id)

    def _post(self, client: httpx.Client, request: BrevoSendRequest) -> httpx.Response:
        return client.post(
            self._api_url,
            json=request.to_api_body(),
            headers=self._headers(),
            timeout=self._timeout,
        )


def _extract_message_id(response: httpx.Response) -> str | None:
    """messageId from a Brevo success body; 2xx without JSON is still a send."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("messageId"):
        return str(body["messageId"])
    return None


class LoggingDispatcher:
    """Dry-run dispatcher for local development: logs instead of sending."""

    def __init__(self) -> None:
        self.sent: list[BrevoSendRequest] = []

    def send(self, request: BrevoSendRequest) -> DispatchResult:
        self.sent.append(request)
        log.info(
            "dry_run_email",
            to=[contact.email for contact in request.to],
            subject=request.subject,
            html_length=len(request.html_content),
        )
        return DispatchResult(status_code=200, message_id=None)
