"""WSGI proxy middleware configuration helper."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    ``Secure`` auth cookies and generated links depend on the original scheme
    and host, so ``X-Forwarded-Proto``/``X-Forwarded-Host`` from a single
    trusted hop are honoured. Controlled by ``USE_PROXYFIX`` (default ``True``).
    """
    if app.config.get("USE_PROXYFIX", True):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
