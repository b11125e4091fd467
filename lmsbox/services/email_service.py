"""
Outbound mail over SMTP.

Only sign-in links are mailed today. Delivery is async (aiosmtplib) and
bodies come from Jinja2 templates; ``send_email`` reports failures in its
result dict and never raises.
"""

import html
import logging
import os
import re
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class EmailServiceConfig:
    """SMTP settings read from the environment at construction time."""

    def __init__(self):
        self.smtp_host = os.getenv("SMTP_HOST", "localhost")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_use_tls = _env_flag("SMTP_USE_TLS", "true")
        self.smtp_use_ssl = _env_flag("SMTP_USE_SSL", "false")
        self.from_email = os.getenv("FROM_EMAIL", "noreply@lmsbox.local")
        self.from_name = os.getenv("FROM_NAME", "LMS")
        self.reply_to_email = os.getenv("REPLY_TO_EMAIL", "")
        self.template_dir = os.getenv("EMAIL_TEMPLATE_DIR", str(DEFAULT_TEMPLATE_DIR))

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"

    def validate(self) -> List[str]:
        errors = []
        if not self.smtp_host:
            errors.append("SMTP_HOST is required")
        if self.smtp_port <= 0:
            errors.append("SMTP_PORT must be a positive integer")
        if not self.from_email:
            errors.append("FROM_EMAIL is required")
        if self.smtp_use_ssl and self.smtp_use_tls:
            errors.append("Cannot use both SSL and TLS simultaneously")
        return errors


class EmailService:
    def __init__(self, config: Optional[EmailServiceConfig] = None):
        self.config = config or EmailServiceConfig()
        template_dir = Path(self.config.template_dir)
        if not template_dir.is_dir():
            logger.warning("Email template directory not found: %s", template_dir)
        self.templates = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def render_template(self, template_name: str, context: Dict[str, Any]) -> Tuple[str, str]:
        """Return (html, text) for ``template_name``.

        The text part comes from ``<name>.txt`` when it exists, otherwise it is
        derived from the HTML by stripping tags.
        """
        html_body = self.templates.get_template(f"{template_name}.html").render(**context)
        try:
            text_body = self.templates.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_body = _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub("", html_body))).strip()
        return html_body, text_body

    def _build_message(
        self, to_email: str, subject: str, html_content: str, text_content: Optional[str], reply_to: Optional[str]
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = to_email
        message["Subject"] = subject
        reply_to = reply_to or self.config.reply_to_email
        if reply_to:
            message["Reply-To"] = reply_to
        message.set_content(text_content or "")
        message.add_alternative(html_content, subtype="html")
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Deliver one message; the result carries ``success`` and ``error``."""
        errors = self.config.validate()
        if errors:
            return {"success": False, "error": f"Configuration errors: {', '.join(errors)}"}

        message = self._build_message(to_email, subject, html_content, text_content, reply_to)
        cfg = self.config
        try:
            async with aiosmtplib.SMTP(
                hostname=cfg.smtp_host,
                port=cfg.smtp_port,
                use_tls=cfg.smtp_use_ssl,
                start_tls=cfg.smtp_use_tls and not cfg.smtp_use_ssl,
            ) as smtp:
                if cfg.smtp_username and cfg.smtp_password:
                    await smtp.login(cfg.smtp_username, cfg.smtp_password)
                smtp_result = await smtp.send_message(message)
        except Exception as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc, exc_info=True)
            return {"success": False, "error": f"Failed to send email to {to_email}: {exc}"}

        logger.info("Email sent to %s: %s", to_email, subject)
        return {"success": True, "error": None, "smtp_result": smtp_result}


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service_for_tests() -> None:
    global _email_service
    _email_service = None
