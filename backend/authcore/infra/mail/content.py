"""Transactional e-mail bodies and their Jinja2 rendering."""

from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from authcore.services._shared.ports import MailContent

OUTRO = "Need help, or have questions? Just reply to this email we will love to help."


def email_verification_content(username: str, verification_url: str) -> MailContent:
    return MailContent(
        name=username,
        intro="Welcome to our App! we're excited to have you on board.",
        instructions="To verify your email please click on the following button",
        button_text="Verify your email",
        button_link=verification_url,
        outro=OUTRO,
    )


def forgot_password_content(username: str, password_reset_url: str) -> MailContent:
    return MailContent(
        name=username,
        intro="We got a request to reset the password of your account",
        instructions="To reset your password click on the following button or link",
        button_text="Reset password",
        button_link=password_reset_url,
        outro=OUTRO,
    )


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("authcore", "templates"),
        autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render(content: MailContent, *, product_name: str, product_link: str) -> tuple[str, str]:
    """
    Render ``content`` to plaintext and HTML bodies.

    :param content: Structured body.
    :type content: MailContent
    :param product_name: Product name shown in header and signature.
    :type product_name: str
    :param product_link: Product home page.
    :type product_link: str
    :returns: ``(text, html)``.
    :rtype: tuple[str, str]
    """
    env = _environment()
    context = {"mail": content, "product_name": product_name, "product_link": product_link}
    text = env.get_template("email/action.txt").render(context)
    html = env.get_template("email/action.html").render(context)
    return text, html
