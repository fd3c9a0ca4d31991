"""Notification sender (SMTP) and console email content."""
from __future__ import annotations
import html
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 10
WELCOME_SUBJECT = "Welcome to Rodeo Drive CRM System"


class NotificationError(Exception):
    """Email could not be delivered."""


class NotificationSender(Protocol):
    def send_email(self, recipient: str, subject: str, html_body: str, text_body: str) -> str: ...


class SmtpEmailSender:
    """Send multipart (text + HTML) email through an SMTP relay with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "noreply@rodeo-drive.com",
        from_name: str = "Rodeo Drive CRM",
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls

    def build_message(self, recipient: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = recipient
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.from_email.rsplit("@", 1)[-1])
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def send_email(self, recipient: str, subject: str, html_body: str, text_body: str) -> str:
        """Deliver one email and return its Message-ID.

        Raises:
            NotificationError: On any SMTP or connection failure
        """
        message = self.build_message(recipient, subject, html_body, text_body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery to {recipient} failed: {e}") from e
        logger.info("Email sent to %s: %s", recipient, subject)
        return message["Message-ID"]


class LoggingEmailSender:
    """Demo-mode sender: logs the email instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[dict] = []

    def send_email(self, recipient: str, subject: str, html_body: str, text_body: str) -> str:
        message_id = make_msgid(domain="localhost")
        self.sent.append({
            "recipient": recipient,
            "subject": subject,
            "html": html_body,
            "text": text_body,
            "message_id": message_id,
        })
        logger.info("[demo-mode] Email to %s not delivered (SMTP not configured): %s", recipient, subject)
        return message_id


def render_welcome_email(
    *,
    name: str,
    email: str,
    employee_id: str,
    department: str,
    role: str,
    temp_password: Optional[str] = None,
    login_url: Optional[str] = None,
) -> tuple[str, str, str]:
    """Return (subject, html, text) for the new-user welcome email."""
    lines = [
        f"Hello {name},",
        "",
        "An account has been created for you in the Rodeo Drive CRM System.",
        "",
        f"Employee ID: {employee_id}",
        f"Email: {email}",
        f"Department: {department}",
        f"Role: {role}",
    ]
    if temp_password:
        lines.append(f"Temporary password: {temp_password}")
        lines.append("You will be asked to choose a new password at first sign-in.")
    if login_url:
        lines.extend(["", f"Sign in: {login_url}"])
    text_body = "\n".join(lines) + "\n"

    rows = "".join(
        f"<tr><td><strong>{html.escape(label)}</strong></td><td>{html.escape(value)}</td></tr>"
        for label, value in (
            ("Employee ID", employee_id),
            ("Email", email),
            ("Department", department),
            ("Role", role),
        )
    )
    password_html = ""
    if temp_password:
        password_html = (
            f"<p>Temporary password: <code>{html.escape(temp_password)}</code><br>"
            "You will be asked to choose a new password at first sign-in.</p>"
        )
    link_html = f'<p><a href="{html.escape(login_url)}">Sign in</a></p>' if login_url else ""
    html_body = (
        f"<html><body><p>Hello {html.escape(name)},</p>"
        "<p>An account has been created for you in the Rodeo Drive CRM System.</p>"
        f"<table>{rows}</table>{password_html}{link_html}</body></html>"
    )
    return WELCOME_SUBJECT, html_body, text_body
