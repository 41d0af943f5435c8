"""
Email Notifications

Renders Jinja2 templates and sends them through Resend. Without an API key
the notifier runs disabled: it renders, logs and reports message_id None.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Final, Optional, Sequence, Union

import resend
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from tenacity import retry, stop_after_attempt, wait_exponential

from editorial.submission.ports import NotificationKind, NotificationPort, NotificationReceipt

logger = logging.getLogger(__name__)

TEMPLATES_DIR: Final[Path] = Path(__file__).resolve().parent / "templates"

SUBJECTS: Final[dict[NotificationKind, str]] = {
    NotificationKind.SUBMISSION_TOKEN: "Sua submissão foi registrada",
    NotificationKind.FEEDBACK_TO_AUTHOR: "Retorno da equipe editorial",
    NotificationKind.AUTHOR_APPROVAL: "Seu artigo foi publicado",
    NotificationKind.EXPIRATION_WARNING: "O acesso à sua submissão vai expirar",
    NotificationKind.TOKEN_EXPIRED: "O acesso à sua submissão expirou",
    NotificationKind.ADMIN_NEW_SUBMISSION: "Nova submissão para revisão",
    NotificationKind.DAILY_SUMMARY: "Resumo diário de submissões",
    NotificationKind.SECURITY_ALERT: "Alerta de segurança",
}


class EmailNotifier(NotificationPort):
    """NotificationPort backed by Resend and Jinja2 templates."""

    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        frontend_url: Optional[str] = None,
        templates_dir: Optional[Path] = None,
    ):
        self._api_key = api_key
        self._sender = sender
        self._frontend_url = (frontend_url or "").rstrip("/")
        if api_key:
            resend.api_key = api_key

        self._jinja = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def access_url(self, token: str) -> str:
        """Author link carrying the access token."""
        return f"{self._frontend_url}/submissions/{token}"

    def render(self, kind: NotificationKind, payload: dict[str, Any]) -> tuple[str, str]:
        """
        Render subject and HTML body for a notification.

        Raises:
            jinja2.UndefinedError: If the payload lacks a template variable
        """
        subject = SUBJECTS[kind]
        context = {"subject": subject, "access_url": None, **payload}
        if payload.get("token"):
            context["access_url"] = self.access_url(payload["token"])
        html = self._jinja.get_template(f"{kind.value}.html").render(**context)
        return subject, html

    async def send(
        self,
        kind: NotificationKind,
        recipients: Union[str, Sequence[str]],
        payload: dict[str, Any],
    ) -> NotificationReceipt:
        to = [recipients] if isinstance(recipients, str) else list(recipients)
        subject, html = self.render(kind, payload)

        if not self.enabled:
            logger.info("Email disabled; skipped %s to %d recipient(s)", kind.value, len(to))
            return NotificationReceipt(message_id=None, recipients=tuple(to))

        response = await asyncio.to_thread(
            self._deliver,
            {"from": self._sender, "to": to, "subject": subject, "html": html},
        )
        message_id = response.get("id") if response else None
        logger.info("Sent %s to %d recipient(s) (%s)", kind.value, len(to), message_id)
        return NotificationReceipt(message_id=message_id, recipients=tuple(to))

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
    def _deliver(self, params: dict[str, Any]) -> dict[str, Any]:
        return resend.Emails.send(params)
