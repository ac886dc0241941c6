"""Email notification service: sends new-submission emails to the studio inbox."""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from html import escape
from typing import Optional

import httpx
import structlog

from hommemade.config import settings
from hommemade.errors import NotifyError, NotifyTimeoutError
from hommemade.schemas.submission import Submission

logger = structlog.get_logger()

FOOTER = "Homme Made - Human in the Loop Creative Systems"

HTML_STYLE = """
body { font-family: 'Space Mono', monospace; line-height: 1.6; color: #333; }
.container { max-width: 600px; margin: 0 auto; padding: 20px; }
.header { background: #0a0a0a; color: #d3ff00; padding: 20px; border-radius: 8px; text-align: center; }
.section { margin: 20px 0; padding: 15px; background: #f9f9f9; border-radius: 8px; }
.field strong { color: #E2725B; }
.footer { text-align: center; color: #666; font-size: 12px; margin-top: 30px; }
"""

# (section title, [(label, field)]); a section is rendered only if one of its
# fields is populated.
SECTIONS: list[tuple[str, list[tuple[str, str]]]] = [
    ("Contact Information", [
        ("Name", "name"),
        ("Email", "email"),
        ("Phone", "phone"),
        ("Brand/Business", "brandName"),
        ("Industry", "industry"),
    ]),
    ("Online Presence", [("Online Presence", "onlinePresence")]),
    ("Project Goals", [
        ("Why Now", "whyNow"),
        ("Success Metrics", "successMetrics"),
        ("Main Struggles", "struggles"),
        ("Other Struggle", "otherStruggle"),
    ]),
    ("Brand Vibe", [
        ("Brand Voice", "brandVoice"),
        ("Brand Tone", "brandTone"),
        ("Avoidances", "avoidances"),
        ("Aesthetic References", "aestheticReferences"),
    ]),
    ("Business Details", [
        ("Offering", "offering"),
        ("Value Provision", "valueProvision"),
        ("Dream Audience", "dreamAudience"),
        ("Feedback", "feedback"),
    ]),
    ("Communication", [
        ("Preferred Method", "communication"),
        ("Additional Info", "additionalInfo"),
    ]),
]


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str


@dataclass
class NotifyOutcome:
    status: str  # sent | skipped | failed
    provider: Optional[str] = None
    error: Optional[str] = None


def _field_value(submission: Submission, field: str) -> str:
    value = getattr(submission, field, None)
    if isinstance(value, list):
        return ", ".join(value)
    return value or ""


def _file_size(size: Optional[int]) -> str:
    return f"{round(size / 1024)}KB" if size else "Unknown size"


def build_email_content(submission: Submission, submitted_at: Optional[datetime] = None) -> EmailContent:
    """Build subject, HTML and plain-text bodies listing every populated field."""
    submitted_at = submitted_at or datetime.now(timezone.utc)
    submitted = submitted_at.strftime("%Y-%m-%d %H:%M:%S UTC")
    subject = f"New Onboarding Form Submission - {submission.name}"

    html_parts = [
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">",
        f"<title>New Onboarding Form Submission</title><style>{HTML_STYLE}</style></head>",
        "<body><div class=\"container\"><div class=\"header\">",
        "<h1>New Onboarding Form Submission</h1>",
        f"<p>Lead ID: {escape(submission.id)}</p></div>",
    ]
    text_parts = [subject, f"Lead ID: {submission.id}", ""]

    for title, fields in SECTIONS:
        populated = [(label, _field_value(submission, f)) for label, f in fields]
        populated = [(label, value) for label, value in populated if value]
        if not populated:
            continue

        html_parts.append(f"<div class=\"section\"><h3>{escape(title)}</h3>")
        for label, value in populated:
            html_parts.append(
                f"<div class=\"field\"><strong>{escape(label)}:</strong> {escape(value)}</div>"
            )
        html_parts.append("</div>")

        text_parts.append(title.upper())
        text_parts.extend(f"{label}: {value}" for label, value in populated)
        text_parts.append("")

    if submission.files:
        html_parts.append("<div class=\"section\"><h3>Uploaded Files</h3>")
        for f in submission.files:
            html_parts.append(
                f"<div class=\"field\"><strong>{escape(f.fileName)}</strong><br>"
                f"<a href=\"{escape(f.url, quote=True)}\" target=\"_blank\">View File</a> "
                f"({_file_size(f.size)})</div>"
            )
        html_parts.append("</div>")

        text_parts.append("UPLOADED FILES")
        text_parts.extend(f"{f.fileName}: {f.url}" for f in submission.files)
        text_parts.append("")

    html_parts.append(
        f"<div class=\"footer\"><p>Submitted on {submitted}</p><p>{FOOTER}</p></div>"
        "</div></body></html>"
    )
    text_parts.extend([f"Submitted on {submitted}", FOOTER])

    return EmailContent(subject=subject, html="".join(html_parts), text="\n".join(text_parts))


class EmailProvider(ABC):
    """Sends a fully built email. Raises NotifyError on failure."""

    name = "base"

    @abstractmethod
    async def send(self, content: EmailContent, sender: str, recipient: str, idempotency_key: str) -> str:
        """Send the email and return the provider message id."""


class ResendEmailProvider(EmailProvider):
    """Resend HTTP API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, content: EmailContent, sender: str, recipient: str, idempotency_key: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Idempotency-Key": idempotency_key,
                    },
                    json={
                        "from": sender,
                        "to": recipient,
                        "subject": content.subject,
                        "html": content.html,
                        "text": content.text,
                    },
                )
        except httpx.TimeoutException as e:
            raise NotifyTimeoutError(f"Resend timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NotifyError(f"Resend transport error: {e}") from e

        if response.status_code >= 400:
            raise NotifyError(f"Resend API error: {response.status_code}")
        return response.json().get("id", "")


class SmtpEmailProvider(EmailProvider):
    """Plain SMTP relay. smtplib is blocking, so it runs in a worker thread."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, content: EmailContent, sender: str, recipient: str, idempotency_key: str) -> str:
        message = EmailMessage()
        message["Subject"] = content.subject
        message["From"] = sender
        message["To"] = recipient
        message["Message-ID"] = f"<{idempotency_key}@hommemade>"
        message.set_content(content.text)
        message.add_alternative(content.html, subtype="html")

        try:
            await asyncio.to_thread(self._send_sync, message)
        except TimeoutError as e:
            raise NotifyTimeoutError(f"SMTP timed out: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise NotifyError(f"SMTP error: {e}") from e
        return message["Message-ID"]


class EmailNotifier:
    """Best-effort notifier: tries the primary provider, then the fallback.

    notify() never raises; the submission is already stored when it runs.
    """

    def __init__(
        self,
        primary: Optional[EmailProvider] = None,
        fallback: Optional[EmailProvider] = None,
        enabled: bool = True,
        sender: str = "",
        recipient: str = "",
    ):
        self.primary = primary
        self.fallback = fallback
        self.enabled = enabled
        self.sender = sender
        self.recipient = recipient

    @property
    def providers(self) -> list[EmailProvider]:
        return [p for p in (self.primary, self.fallback) if p is not None]

    async def notify(self, submission: Submission) -> NotifyOutcome:
        if not self.enabled:
            logger.info("email_notifications_disabled", submission_id=submission.id)
            return NotifyOutcome(status="skipped")
        if not self.providers:
            logger.info("email_not_configured", submission_id=submission.id)
            return NotifyOutcome(status="skipped")

        content = build_email_content(submission)
        idempotency_key = f"submission-{submission.id}"
        last_error: Optional[str] = None

        for provider in self.providers:
            try:
                message_id = await provider.send(content, self.sender, self.recipient, idempotency_key)
            except Exception as e:
                last_error = str(e)
                logger.error(
                    "email_send_failed",
                    provider=provider.name,
                    submission_id=submission.id,
                    error=last_error,
                    error_type=type(e).__name__,
                )
                continue

            logger.info(
                "email_sent",
                provider=provider.name,
                submission_id=submission.id,
                message_id=message_id,
            )
            return NotifyOutcome(status="sent", provider=provider.name)

        return NotifyOutcome(status="failed", error=last_error)


def build_notifier() -> EmailNotifier:
    """Notifier wired from settings: Resend first, SMTP as fallback."""
    providers: list[EmailProvider] = []
    if settings.resend_api_key:
        providers.append(
            ResendEmailProvider(
                api_key=settings.resend_api_key,
                api_url=settings.resend_api_url,
                timeout=settings.email_timeout_seconds,
            )
        )
    if settings.smtp_host:
        providers.append(
            SmtpEmailProvider(
                host=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                timeout=settings.email_timeout_seconds,
            )
        )

    return EmailNotifier(
        primary=providers[0] if providers else None,
        fallback=providers[1] if len(providers) > 1 else None,
        enabled=settings.enable_email_notifications,
        sender=settings.email_from,
        recipient=settings.email_to,
    )
