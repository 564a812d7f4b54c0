"""
Sentry Error Tracking
=====================

Error tracking for the AdScope API, with Google Ads credentials scrubbed
from every event.

Related files:
- app/main.py: Initializes Sentry on app startup, reports 5xx Google Ads errors
- app/deps.py: Sets user context after authentication
- app/routers/google_ads_deps.py: Tags events with customer / login-customer-id
- app/services/optimization_executor.py: Reports failed mutations

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled without it)
- ENVIRONMENT: Environment name (production, staging, development)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

logger = logging.getLogger(__name__)

_initialized = False

# Header and body keys that carry Google Ads / OAuth secrets
SENSITIVE_KEYS = {
    "authorization",
    "developer-token",
    "cookie",
    "access_token",
    "refresh_token",
    "client_secret",
    "developer_token",
}
REDACTED = "[redacted]"


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    return value


def scrub_event(event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """before_send hook: redact credentials in request data and extras."""
    for key in ("request", "extra", "contexts"):
        if key in event:
            event[key] = _scrub(event[key])
    return event


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for FastAPI.

    Returns:
        True if Sentry was initialized, False when no DSN is configured
        or initialization failed.
    """
    global _initialized

    dsn = os.environ.get("SENTRY_DSN")
    if not dsn:
        return False

    environment = os.environ.get("ENVIRONMENT", "development")

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                StarletteIntegration(transaction_style="endpoint"),
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
            before_send=scrub_event,
            release=os.environ.get("RELEASE_VERSION"),
        )
    except Exception as e:
        logger.error("[SENTRY] Failed to initialize: %s", e)
        return False

    _initialized = True
    logger.info("[SENTRY] Initialized for %s environment", environment)
    return True


def set_user_context(user_id: str, email: Optional[str] = None) -> None:
    """Attach the authenticated user to subsequent Sentry events."""
    if _initialized:
        sentry_sdk.set_user({"id": user_id, "email": email})


def set_google_ads_context(customer_id: str, login_customer_id: Optional[str]) -> None:
    """Tag events with the customer being operated on and the MCC used."""
    if not _initialized:
        return
    sentry_sdk.set_tag("google_ads.customer_id", customer_id)
    sentry_sdk.set_tag("google_ads.login_customer_id", login_customer_id or "direct")


def capture_exception(exception: Exception, extra: Optional[dict] = None) -> None:
    """
    Report a handled exception.

    Use this for errors that are caught and turned into a per-item failure
    (e.g. one optimization in a batch) but should still be visible.
    """
    if not _initialized:
        logger.debug("[SENTRY] Disabled, not capturing: %s", exception)
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in _scrub(extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
