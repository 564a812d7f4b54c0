"""Credential service: which Google Ads credentials a request runs with.

WHAT:
    Resolves, for an authenticated user, the developer token and a fresh
    OAuth access token. Users may bring their own credentials (own
    developer token + OAuth client + refresh token); everyone else uses the
    shared service credentials from settings.

WHY:
    - Every Google Ads call starts here, so the "not configured" signal is
      raised in one place and the UI can route the user to setup.
    - Keeps encryption and OAuth refresh out of routers.

REFERENCES:
    - backend/app/security.py (encrypt_secret / decrypt_secret)
    - backend/app/models.py (UserGoogleAdsCredentials)
    - https://developers.google.com/identity/protocols/oauth2/web-server#offline
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from app.deps import Settings, get_settings
from app.models import McCHierarchyRecord, User, UserGoogleAdsCredentials
from app.security import decrypt_secret, encrypt_secret
from app.services.exceptions import CredentialsNotConfiguredError, TokenRefreshError
from app.services.google_ads_client import GAdsClient, clean_customer_id
from app.services.mcc_resolver import login_customer_id_cache

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# A stored access token is reused only while it has more than this left
ACCESS_TOKEN_MIN_TTL = timedelta(seconds=60)


@dataclass(frozen=True)
class GoogleAdsCredentials:
    """Resolved credentials for one request."""

    customer_id: Optional[str]
    developer_token: str
    access_token: str
    uses_own_credentials: bool
    # Manager account to send as login-customer-id; None until MCC resolution scopes a client
    login_customer_id: Optional[str] = None

    def public_dict(self) -> Dict[str, Any]:
        """Non-secret view for API responses."""
        return {
            "customer_id": self.customer_id,
            "uses_own_credentials": self.uses_own_credentials,
        }


def _post_form(http_client: Optional[Any], url: str, data: Dict[str, str]) -> Any:
    if http_client is not None:
        return http_client.post(url, data=data)
    with httpx.Client(timeout=15.0) as client:
        return client.post(url, data=data)


def refresh_access_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    http_client: Optional[Any] = None,
) -> Tuple[str, int]:
    """Exchange a refresh token for an access token.

    Returns:
        (access_token, expires_in_seconds)

    Raises:
        TokenRefreshError: Google rejected the grant or returned no token.
    """
    try:
        response = _post_form(http_client, GOOGLE_TOKEN_URL, {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })
    except httpx.HTTPError as e:
        logger.error("[CREDENTIALS] OAuth refresh request failed: %s", e)
        raise TokenRefreshError(f"OAuth token refresh failed: {e}") from e

    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.status_code >= 400:
        reason = data.get("error") or response.status_code
        logger.warning("[CREDENTIALS] OAuth refresh rejected: %s", reason)
        raise TokenRefreshError(f"OAuth token refresh failed: {reason}", status_code=response.status_code)

    access_token = data.get("access_token")
    if not access_token:
        raise TokenRefreshError("No access token received from OAuth refresh")

    return access_token, int(data.get("expires_in", 3600))


def get_credentials_record(db: Session, user: User) -> Optional[UserGoogleAdsCredentials]:
    return (
        db.query(UserGoogleAdsCredentials)
        .filter(UserGoogleAdsCredentials.user_id == user.id)
        .first()
    )


def _has_own_credentials(record: Optional[UserGoogleAdsCredentials]) -> bool:
    return bool(
        record
        and record.uses_own_credentials
        and record.is_configured
        and record.developer_token_enc
        and record.refresh_token_enc
        and record.client_id
        and record.client_secret_enc
    )


def resolve_credentials(
    db: Session,
    user: User,
    settings: Optional[Settings] = None,
    http_client: Optional[Any] = None,
    now: Optional[datetime] = None,
) -> GoogleAdsCredentials:
    """Resolve developer token + fresh access token for `user`.

    Order:
        1. The user's own credentials, when marked configured. A cached
           access token is reused while still valid, otherwise refreshed
           with the user's OAuth client and persisted.
        2. Shared service credentials via refresh-token grant.

    Raises:
        CredentialsNotConfiguredError: Neither source is available.
        TokenRefreshError: The OAuth refresh was rejected.
    """
    settings = settings or get_settings()
    record = get_credentials_record(db, user)
    now = now or datetime.utcnow()

    if _has_own_credentials(record):
        label = f"user:{user.id}"
        developer_token = decrypt_secret(record.developer_token_enc, context=f"{label}:developer_token")

        expires_at = record.access_token_expires_at
        if record.access_token_enc and expires_at and expires_at - now > ACCESS_TOKEN_MIN_TTL:
            access_token = decrypt_secret(record.access_token_enc, context=f"{label}:access")
        else:
            logger.info("[CREDENTIALS] Refreshing own access token for user %s", user.id)
            access_token, expires_in = refresh_access_token(
                record.client_id,
                decrypt_secret(record.client_secret_enc, context=f"{label}:client_secret"),
                decrypt_secret(record.refresh_token_enc, context=f"{label}:refresh"),
                http_client=http_client,
            )
            record.access_token_enc = encrypt_secret(access_token, context=f"{label}:access")
            record.access_token_expires_at = now + timedelta(seconds=expires_in)
            db.commit()

        return GoogleAdsCredentials(
            customer_id=clean_customer_id(record.customer_id) or None,
            developer_token=developer_token,
            access_token=access_token,
            uses_own_credentials=True,
        )

    if settings.shared_credentials_available:
        logger.info("[CREDENTIALS] Using shared credentials for user %s", user.id)
        access_token, _ = refresh_access_token(
            settings.GOOGLE_CLIENT_ID,
            settings.GOOGLE_CLIENT_SECRET,
            settings.GOOGLE_REFRESH_TOKEN,
            http_client=http_client,
        )
        customer_id = (record.customer_id if record else None) or settings.GOOGLE_CUSTOMER_ID
        return GoogleAdsCredentials(
            customer_id=clean_customer_id(customer_id) or None,
            developer_token=settings.GOOGLE_DEVELOPER_TOKEN,
            access_token=access_token,
            uses_own_credentials=False,
        )

    logger.warning("[CREDENTIALS] No credentials available for user %s", user.id)
    raise CredentialsNotConfiguredError()


def save_user_credentials(
    db: Session,
    user: User,
    *,
    uses_own_credentials: bool,
    customer_id: Optional[str] = None,
    developer_token: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    refresh_token: Optional[str] = None,
) -> UserGoogleAdsCredentials:
    """Create or update the user's credential record.

    Secrets are only overwritten when a new value is supplied, so the UI can
    change e.g. the customer ID without re-sending tokens. Any change drops
    the cached access token and the user's memoized login-customer-ids.
    When the OAuth identity changes (own/shared switch, new OAuth client or
    refresh token) the stored MCC hierarchy is dropped too, since it
    describes what the previous identity could reach.
    """
    record = get_credentials_record(db, user)
    if record is None:
        record = UserGoogleAdsCredentials(user_id=user.id)
        db.add(record)
        identity_changed = True
    else:
        identity_changed = bool(record.uses_own_credentials) != uses_own_credentials

    label = f"user:{user.id}"
    record.uses_own_credentials = uses_own_credentials
    if customer_id is not None:
        record.customer_id = clean_customer_id(customer_id) or None
    if developer_token:
        record.developer_token_enc = encrypt_secret(developer_token, context=f"{label}:developer_token")
    if client_id:
        identity_changed = identity_changed or client_id != record.client_id
        record.client_id = client_id
    if client_secret:
        record.client_secret_enc = encrypt_secret(client_secret, context=f"{label}:client_secret")
    if refresh_token:
        identity_changed = True
        record.refresh_token_enc = encrypt_secret(refresh_token, context=f"{label}:refresh")

    if identity_changed:
        dropped = db.query(McCHierarchyRecord).filter(McCHierarchyRecord.user_id == user.id).delete()
        if dropped:
            logger.info("[CREDENTIALS] Dropped %d stored hierarchy rows for user %s", dropped, user.id)
    login_customer_id_cache.invalidate(str(user.id))

    if uses_own_credentials:
        record.is_configured = bool(
            record.developer_token_enc and record.client_id and record.client_secret_enc and record.refresh_token_enc
        )
    else:
        record.is_configured = True

    record.access_token_enc = None
    record.access_token_expires_at = None

    db.commit()
    db.refresh(record)
    logger.info(
        "[CREDENTIALS] Saved credentials for user %s (own=%s, configured=%s)",
        user.id, record.uses_own_credentials, record.is_configured
    )
    return record


def credentials_status(db: Session, user: User, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Whether Google Ads calls can be made for this user, and with what."""
    settings = settings or get_settings()
    record = get_credentials_record(db, user)
    own = _has_own_credentials(record)
    shared = settings.shared_credentials_available
    customer_id = (record.customer_id if record else None) or (None if own else settings.GOOGLE_CUSTOMER_ID)
    return {
        "configured": own or shared,
        "uses_own_credentials": bool(record and record.uses_own_credentials),
        "own_credentials_complete": own,
        "shared_available": shared,
        "customer_id": clean_customer_id(customer_id) or None,
    }


def create_client(
    credentials: GoogleAdsCredentials,
    login_customer_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> GAdsClient:
    """Build a Google Ads client for resolved credentials.

    An explicit `login_customer_id` wins over the one carried by the credentials.
    """
    settings = settings or get_settings()
    return GAdsClient(
        access_token=credentials.access_token,
        developer_token=credentials.developer_token,
        login_customer_id=login_customer_id or credentials.login_customer_id,
        api_version=settings.GOOGLE_ADS_API_VERSION,
    )
