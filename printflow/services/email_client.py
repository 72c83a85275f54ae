"""
email_client.py — Outbound email over an HTTP email API

send(to, subject, html, attachments) → delivery id, or raises DeliveryError.

Business Rules:
- Retries 429 and 5xx with exponential backoff; 4xx fails immediately
- Transport errors (connect, read, timeout, protocol) are retried, then
  raised as DeliveryError
- A 2xx reply is a delivery even when its body carries no JSON id
- An unconfigured API URL is a delivery failure, not a silent drop

Called by: services/notification_service.py (outbox dispatcher)
Depends on: httpx, config (email_api_url, email_api_key, email_from)
"""

import base64
import logging
import time
from dataclasses import dataclass

import httpx

from ..config import settings
from ..exceptions import DeliveryError

log = logging.getLogger("printflow.email")

MAX_RETRIES = 3
BACKOFF_BASE = 2  # seconds; doubles per attempt


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"

    def to_payload(self) -> dict:
        return {
            "filename": self.filename,
            "content": base64.b64encode(self.content).decode("ascii"),
            "content_type": self.content_type,
        }


class EmailClient:
    """Thin wrapper around the email API with retry."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str | None = None,
        client: httpx.Client | None = None,
        backoff_base: float = BACKOFF_BASE,
    ):
        self.api_url = settings.email_api_url if api_url is None else api_url
        self.api_key = settings.email_api_key if api_key is None else api_key
        self.sender = sender or settings.email_from
        self.backoff_base = backoff_base
        if client is None:
            from ..http_client import http

            client = http
        self.client = client

    def send(self, to: list[str] | str, subject: str, html: str,
             attachments: list[Attachment] | None = None) -> str:
        """Deliver one message; returns the provider's message id."""
        if not self.api_url:
            raise DeliveryError("Email API is not configured")
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            raise DeliveryError("No recipients")

        payload = {
            "from": self.sender,
            "to": recipients,
            "subject": subject,
            "html": html,
            "attachments": [a.to_payload() for a in attachments or []],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return self._post_with_retry(payload, headers)

    def _post_with_retry(self, payload: dict, headers: dict) -> str:
        last_error = ""
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = self.client.post(
                    self.api_url, json=payload, headers=headers,
                    timeout=settings.email_timeout_seconds,
                )
            except httpx.TransportError as e:
                last_error = str(e) or e.__class__.__name__
                log.warning("Email API transport error (attempt %d): %s", attempt + 1, e)
                self._sleep(attempt)
                continue

            if resp.status_code in (200, 201, 202):
                return _message_id(resp)

            if resp.status_code == 429 or resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}"
                log.warning("Email API %d (attempt %d)", resp.status_code, attempt + 1)
                self._sleep(attempt)
                continue

            raise DeliveryError(
                f"Email API rejected message: HTTP {resp.status_code} {resp.text[:300]}",
                status=resp.status_code,
            )

        raise DeliveryError(f"Email delivery failed after {MAX_RETRIES} retries: {last_error}")

    def _sleep(self, attempt: int) -> None:
        if attempt < MAX_RETRIES and self.backoff_base:
            time.sleep(self.backoff_base ** (attempt + 1))


def _message_id(resp: httpx.Response) -> str:
    """Provider id from a 2xx body; the message is accepted even without one."""
    try:
        data = resp.json() if resp.content else {}
    except ValueError:
        log.warning("Email API returned a non-JSON body on HTTP %d", resp.status_code)
        return ""
    if not isinstance(data, dict):
        return ""
    return str(data.get("id") or data.get("message_id") or "")


def send(to, subject: str, html: str, attachments: list[Attachment] | None = None) -> str:
    return EmailClient().send(to, subject, html, attachments)
