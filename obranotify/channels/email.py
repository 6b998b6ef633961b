"""Email transports.

:class:`ResendEmailSender` posts messages to the Resend HTTP API.
:class:`BufferedEmailSender` does NOT send anything: it keeps messages in
memory for later retrieval by a test harness or a dry run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from obranotify.models.channels import EmailMessage

if TYPE_CHECKING:
    from obranotify.config import NotifyConfig

logger = logging.getLogger(__name__)

RESEND_API_BASE = "https://api.resend.com/emails"


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider rejects or cannot receive a message."""


class ResendEmailSender:
    """Sends email through Resend.

    Parameters
    ----------
    api_key:
        Resend API key.  When empty, messages are skipped with a warning.
    from_email:
        Sender address.  When empty, messages are skipped with a warning.
    api_base:
        Endpoint receiving ``POST {from, to, subject, html}``.
    timeout:
        HTTP timeout in seconds.
    client:
        Optional pre-built ``httpx.Client`` (tests inject one built on
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        *,
        api_base: str = RESEND_API_BASE,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._api_base = api_base
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, cfg: NotifyConfig) -> ResendEmailSender:
        return cls(
            cfg.resend_api_key,
            cfg.resend_from_email,
            api_base=cfg.resend_api_base,
            timeout=cfg.email_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def close(self) -> None:
        """Shut down the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def send_email(self, message: EmailMessage) -> None:
        if not self.is_configured:
            logger.warning("Resend is not configured; email to %s skipped", message.to)
            return

        client = self._get_client()
        try:
            response = client.post(
                self._api_base,
                json={
                    "from": self._from_email,
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Resend request failed: {exc}") from exc

        if not response.is_success:
            raise EmailDeliveryError(
                f"Resend send failed with HTTP {response.status_code}: {response.text}"
            )
        logger.debug("Email sent to %s", message.to)


class BufferedEmailSender:
    """Collects messages instead of sending them.

    Call ``flush()`` to retrieve and clear pending messages.
    """

    def __init__(self) -> None:
        self._pending: list[EmailMessage] = []

    def send_email(self, message: EmailMessage) -> None:
        self._pending.append(message)
        logger.debug("Buffered email to %s", message.to)

    def flush(self) -> list[EmailMessage]:
        """Return and clear all pending messages."""
        messages = list(self._pending)
        self._pending.clear()
        return messages

    @property
    def pending_count(self) -> int:
        return len(self._pending)
