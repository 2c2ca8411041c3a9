from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class MailContent:
    """
    Structured body of a transactional e-mail with one call-to-action.

    :param name: Recipient display name used in the greeting.
    :type name: str
    :param intro: Opening paragraph.
    :type intro: str
    :param instructions: Text shown above the action button.
    :type instructions: str
    :param button_text: Label of the action button.
    :type button_text: str
    :param button_link: Target URL of the action button.
    :type button_link: str
    :param outro: Closing paragraph.
    :type outro: str
    :param button_color: Hex colour of the button.
    :type button_color: str
    """

    name: str
    intro: str
    instructions: str
    button_text: str
    button_link: str
    outro: str
    button_color: str = "#22BC66"


@dataclass(frozen=True, slots=True)
class OutboundEmail:
    recipient: str
    subject: str
    content: MailContent


class EmailDispatcher(Protocol):
    """Port for delivering transactional e-mail.

    Implementations raise on delivery failure; callers decide whether to
    propagate.
    """

    def send(self, message: OutboundEmail) -> None: ...


class InMemoryEmailDispatcher(EmailDispatcher):
    """Dispatcher that keeps messages in an outbox (tests, development).

    :param fail: When ``True`` every ``send`` raises :class:`RuntimeError`.
    :type fail: bool
    """

    def __init__(self, *, fail: bool = False) -> None:
        self.outbox: list[OutboundEmail] = []
        self.fail = fail

    def send(self, message: OutboundEmail) -> None:
        if self.fail:
            raise RuntimeError("In-memory dispatcher configured to fail.")
        self.outbox.append(message)

    def last_to(self, recipient: str) -> OutboundEmail | None:
        """Return the most recent message sent to ``recipient``."""
        for message in reversed(self.outbox):
            if message.recipient == recipient:
                return message
        return None

    def clear(self) -> None:
        self.outbox.clear()
