"""Unit tests for e-mail content rendering and SMTP delivery."""

import smtplib

import pytest

from authcore.infra.mail.content import (
    email_verification_content,
    forgot_password_content,
    render,
)
from authcore.infra.mail.smtp_dispatcher import SMTPEmailDispatcher
from authcore.services._shared.ports import InMemoryEmailDispatcher, OutboundEmail


class FakeSMTP:
    """Records the calls SMTPEmailDispatcher makes on :class:`smtplib.SMTP`."""

    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, msg):
        self.calls.append("send_message")
        self.sent.append(msg)


@pytest.fixture()
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


@pytest.fixture()
def message():
    return OutboundEmail(
        recipient="jane@example.com",
        subject="Please verify your email",
        content=email_verification_content("jane", "http://x.test/verify-email/abc123"),
    )


class TestContent:
    def test_verification_content(self):
        content = email_verification_content("jane", "http://x.test/v/abc")
        assert content.name == "jane"
        assert content.button_link == "http://x.test/v/abc"
        assert content.button_text == "Verify your email"

    def test_reset_content(self):
        content = forgot_password_content("jane", "http://x.test/r/abc")
        assert content.button_link == "http://x.test/r/abc"
        assert content.button_text == "Reset password"

    def test_render_produces_text_and_html_with_the_link(self, message):
        text, html = render(message.content, product_name="Acme", product_link="http://acme.test")
        assert "http://x.test/verify-email/abc123" in text
        assert 'href="http://x.test/verify-email/abc123"' in html
        assert "Acme" in text and "Acme" in html
        assert "jane" in text

    def test_html_escapes_names(self):
        content = email_verification_content("<b>mallory</b>", "http://x.test/v/abc")
        _, html = render(content, product_name="Acme", product_link="http://acme.test")
        assert "<b>mallory</b>" not in html
        assert "&lt;b&gt;mallory&lt;/b&gt;" in html


class TestSMTPEmailDispatcher:
    def test_sends_multipart_message(self, fake_smtp, message):
        dispatcher = SMTPEmailDispatcher(
            host="smtp.test", port=2525, sender="noreply@acme.test", timeout=3.0
        )
        dispatcher.send(message)

        (server,) = fake_smtp.instances
        assert (server.host, server.port, server.timeout) == ("smtp.test", 2525, 3.0)
        assert server.calls == ["send_message", "quit"]
        msg = server.sent[0]
        assert msg["To"] == "jane@example.com"
        assert msg["From"] == "noreply@acme.test"
        assert msg["Subject"] == "Please verify your email"
        assert [part.get_content_type() for part in msg.get_payload()] == [
            "text/plain",
            "text/html",
        ]

    def test_tls_and_login_when_configured(self, fake_smtp, message):
        dispatcher = SMTPEmailDispatcher(
            host="smtp.test",
            port=587,
            sender="noreply@acme.test",
            username="mailer",
            password="pw",
            use_tls=True,
        )
        dispatcher.send(message)
        assert fake_smtp.instances[0].calls == [
            "starttls",
            ("login", "mailer", "pw"),
            "send_message",
            "quit",
        ]

    def test_delivery_errors_propagate(self, monkeypatch, message):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no relay")

        monkeypatch.setattr(smtplib, "SMTP", refuse)
        dispatcher = SMTPEmailDispatcher(host="smtp.test", port=25, sender="noreply@acme.test")
        with pytest.raises(OSError):
            dispatcher.send(message)


class TestInMemoryEmailDispatcher:
    def test_outbox_and_last_to(self, message):
        dispatcher = InMemoryEmailDispatcher()
        dispatcher.send(message)
        assert dispatcher.outbox == [message]
        assert dispatcher.last_to("jane@example.com") is message
        assert dispatcher.last_to("nobody@example.com") is None
        dispatcher.clear()
        assert dispatcher.outbox == []

    def test_fail_mode_raises(self, message):
        with pytest.raises(RuntimeError):
            InMemoryEmailDispatcher(fail=True).send(message)
