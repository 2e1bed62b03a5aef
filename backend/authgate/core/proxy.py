"""Reverse-proxy awareness for the WSGI app."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Trust ``PROXY_FIX_HOPS`` levels of ``X-Forwarded-*`` when ``USE_PROXYFIX`` is set.

    Request timing logs record ``request.remote_addr``; behind a
    TLS-terminating proxy that would otherwise always be the proxy itself.
    """
    if not app.config.get("USE_PROXYFIX", True):
        return
    hops = int(app.config.get("PROXY_FIX_HOPS", 1))
    app.wsgi_app = ProxyFix(  # type: ignore[method-assign]
        app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops
    )
