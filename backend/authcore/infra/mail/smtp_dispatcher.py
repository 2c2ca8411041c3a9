from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from authcore.infra.mail.content import render
from authcore.services._shared.ports import EmailDispatcher, OutboundEmail


class SMTPEmailDispatcher(EmailDispatcher):
    """
    Deliver multipart (plaintext + HTML) mail through an SMTP relay.

    A connection is opened per message. Delivery errors (``smtplib.SMTPException``,
    ``OSError``) propagate; the session service logs and swallows them.

    :param host: SMTP server host.
    :type host: str
    :param port: SMTP server port.
    :type port: int
    :param sender: ``From`` address.
    :type sender: str
    :param username: Optional login user.
    :type username: str | None
    :param password: Optional login password.
    :type password: str | None
    :param use_tls: Upgrade the connection with ``STARTTLS``.
    :type use_tls: bool
    :param timeout: Socket timeout in seconds.
    :type timeout: float
    :param product_name: Product name rendered in the message.
    :type product_name: str
    :param product_link: Product link rendered in the message.
    :type product_link: str
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        timeout: float = 10.0,
        product_name: str = "Project Manager",
        product_link: str = "http://localhost:3000",
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.product_name = product_name
        self.product_link = product_link

    def build_message(self, message: OutboundEmail) -> MIMEMultipart:
        text, html = render(
            message.content, product_name=self.product_name, product_link=self.product_link
        )
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.sender
        msg["To"] = message.recipient
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(self, message: OutboundEmail) -> None:
        msg = self.build_message(message)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
