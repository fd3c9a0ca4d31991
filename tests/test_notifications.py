"""Tests for welcome email content and the SMTP sender."""
import smtplib

import pytest

from crm_console.core import notifications
from crm_console.core.notifications import (
    LoggingEmailSender,
    NotificationError,
    SmtpEmailSender,
    render_welcome_email,
)


def _render(**overrides):
    fields = dict(
        name="Ana Lopez",
        email="ana@example.com",
        employee_id="E100",
        department="Engineering",
        role="Technician",
    )
    fields.update(overrides)
    return render_welcome_email(**fields)


def test_welcome_email_lists_placement():
    subject, html_body, text_body = _render(login_url="https://crm.example.com/login")

    assert subject == "Welcome to Rodeo Drive CRM System"
    assert "Employee ID: E100" in text_body
    assert "Department: Engineering" in text_body
    assert "Role: Technician" in text_body
    assert "Sign in: https://crm.example.com/login" in text_body
    assert 'href="https://crm.example.com/login"' in html_body


def test_welcome_email_includes_temporary_password_only_when_given():
    _, html_body, text_body = _render(temp_password="Tmp#Pass1234")
    assert "Temporary password: Tmp#Pass1234" in text_body
    assert "<code>Tmp#Pass1234</code>" in html_body

    _, html_body, text_body = _render()
    assert "Temporary password" not in text_body
    assert "Temporary password" not in html_body


def test_welcome_email_escapes_html():
    _, html_body, _ = _render(department="R&D <West>")
    assert "R&amp;D &lt;West&gt;" in html_body


class _FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.actions = []
        self.messages = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.actions.append("starttls")

    def login(self, user, password):
        self.actions.append(("login", user))

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture()
def fake_smtp(monkeypatch):
    _FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", _FakeSMTP)
    return _FakeSMTP


def test_smtp_sender_uses_starttls_and_login(fake_smtp):
    sender = SmtpEmailSender("smtp.example.com", 587, "mailer", "secret", from_email="crm@example.com")

    message_id = sender.send_email("ana@example.com", "Hello", "<p>Hi</p>", "Hi")

    (server,) = fake_smtp.instances
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.actions == ["starttls", ("login", "mailer")]
    (message,) = server.messages
    assert message["To"] == "ana@example.com"
    assert "crm@example.com" in message["From"]
    assert message["Message-ID"] == message_id
    assert message.is_multipart()


def test_smtp_sender_without_tls_or_credentials(fake_smtp):
    SmtpEmailSender("localhost", 25, use_tls=False).send_email("ana@example.com", "Hello", "<p>Hi</p>", "Hi")
    assert fake_smtp.instances[0].actions == []


def test_smtp_failure_raises_notification_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "busy")

    monkeypatch.setattr(notifications.smtplib, "SMTP", refuse)

    with pytest.raises(NotificationError, match="ana@example.com"):
        SmtpEmailSender("smtp.example.com").send_email("ana@example.com", "Hello", "<p>Hi</p>", "Hi")


def test_logging_sender_keeps_messages():
    sender = LoggingEmailSender()
    message_id = sender.send_email("ana@example.com", "Hello", "<p>Hi</p>", "Hi")
    assert sender.sent[0]["message_id"] == message_id
    assert sender.sent[0]["recipient"] == "ana@example.com"
