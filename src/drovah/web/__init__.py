"""Web interface for Drovah.

This module provides the FastAPI application serving the push webhook,
build information, status badges and archived artifacts.
"""

from __future__ import annotations

from drovah.web.app import create_app
from drovah.web.badges import render_badge
from drovah.web.middleware import RequestLoggingMiddleware
from drovah.web.webhooks import WebhookAuthenticator, WebhookData, decode_headers

__all__ = [
    "RequestLoggingMiddleware",
    "WebhookAuthenticator",
    "WebhookData",
    "create_app",
    "decode_headers",
    "render_badge",
]
