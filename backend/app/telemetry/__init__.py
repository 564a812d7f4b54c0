"""
Telemetry
=========

Error tracking (Sentry) and LLM tracing (Langfuse) for the AdScope API.
Both are optional: without SENTRY_DSN / LANGFUSE_* keys every helper here
is a no-op.

Usage:
    from app.telemetry import init_observability, shutdown_observability

    init_observability()      # on startup
    shutdown_observability()  # on shutdown
"""

import logging

from app.telemetry.llm_trace import init_langfuse, log_fallback, log_generation
from app.telemetry.llm_trace import shutdown as shutdown_langfuse
from app.telemetry.sentry import capture_exception, init_sentry, set_google_ads_context, set_user_context

logger = logging.getLogger(__name__)


def init_observability() -> dict:
    """Start every configured tool; returns {"sentry": bool, "langfuse": bool}."""
    status = {"sentry": init_sentry(), "langfuse": init_langfuse()}
    disabled = [name for name, enabled in status.items() if not enabled]
    if disabled:
        logger.info("[TELEMETRY] Not configured: %s", ", ".join(disabled))
    return status


def shutdown_observability() -> None:
    shutdown_langfuse()


__all__ = [
    "init_observability",
    "shutdown_observability",
    "capture_exception",
    "set_user_context",
    "set_google_ads_context",
    "log_generation",
    "log_fallback",
]
