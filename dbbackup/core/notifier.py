"""Run-result notifiers.

Email settings come from environment variables (read at send-time):
- SMTP_HOST (required)
- SMTP_PORT (optional; default 587)
- SMTP_USER (optional)
- SMTP_PASS (optional)
- SMTP_STARTTLS (optional; default "true")
- SMTP_FROM (required)
- SMTP_TO (required; comma-separated list)

A webhook receives `{"text": <message>}` as JSON; its URL comes from the
`Notification.WebhookUrl` config entry or the NOTIFY_WEBHOOK_URL variable.
"""

from __future__ import annotations

import logging
import os
import smtplib
from email.message import EmailMessage
from typing import List, Optional, Protocol, Sequence

import httpx

from dbbackup.schemas.config import AppConfig


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_notification(self, message: str) -> None:
        ...


def _get_bool(env_value: str | None, default: bool) -> bool:
    if env_value is None:
        return default
    return env_value.strip().lower() in {"1", "true", "yes", "on"}


def email_configured() -> bool:
    return bool(os.getenv("SMTP_HOST") and os.getenv("SMTP_FROM") and os.getenv("SMTP_TO"))


class EmailNotifier:
    """Send a plaintext email per notification."""

    def __init__(self, subject_prefix: str = "[dbbackup]") -> None:
        self.subject_prefix = subject_prefix

    def send_notification(self, message: str) -> None:
        host = os.getenv("SMTP_HOST")
        from_addr = os.getenv("SMTP_FROM")
        to_addrs_raw = os.getenv("SMTP_TO")

        if not host or not from_addr or not to_addrs_raw:
            logger.debug("email_notifier_skipped | reason=missing_smtp_config")
            return

        port = int(os.getenv("SMTP_PORT", "587"))
        user = os.getenv("SMTP_USER")
        password = os.getenv("SMTP_PASS")
        use_starttls = _get_bool(os.getenv("SMTP_STARTTLS"), True)

        to_addrs: List[str] = [addr.strip() for addr in to_addrs_raw.split(",") if addr.strip()]
        if not to_addrs:
            return

        msg = EmailMessage()
        msg["Subject"] = f"{self.subject_prefix} {message.splitlines()[0] if message else ''}".strip()
        msg["From"] = from_addr
        msg["To"] = ", ".join(to_addrs)
        msg.set_content(message)

        with smtplib.SMTP(host=host, port=port, timeout=15) as smtp:
            if use_starttls:
                smtp.starttls()
            if user:
                smtp.login(user, password or "")
            smtp.send_message(msg)


class WebhookNotifier:
    """POST the message to an HTTP endpoint (Slack/Teams/ntfy-style)."""

    def __init__(self, url: str, *, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def send_notification(self, message: str) -> None:
        with httpx.Client(timeout=self.timeout, follow_redirects=True, transport=self._transport) as client:
            resp = client.post(self.url, json={"text": message})
            resp.raise_for_status()


class CompositeNotifier:
    """Deliver to every notifier; failures of one do not stop the others."""

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self.notifiers = list(notifiers)

    def send_notification(self, message: str) -> None:
        errors: List[str] = []
        for notifier in self.notifiers:
            try:
                notifier.send_notification(message)
            except Exception as exc:
                logger.warning("notifier_failed | notifier=%s error=%s", type(notifier).__name__, exc)
                errors.append(f"{type(notifier).__name__}: {exc}")
        if errors:
            raise RuntimeError("; ".join(errors))


def build_notifier(config: AppConfig) -> Optional[Notifier]:
    """Return the configured notifier, or None when nothing is configured."""
    notifiers: List[Notifier] = []
    webhook_url = config.notification.webhook_url or os.getenv("NOTIFY_WEBHOOK_URL")
    if webhook_url:
        notifiers.append(WebhookNotifier(webhook_url))
    if email_configured():
        notifiers.append(EmailNotifier())
    if not notifiers:
        return None
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
