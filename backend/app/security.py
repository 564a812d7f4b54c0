"""Session tokens and encryption of stored Google Ads secrets.

WHAT:
    - JWT issue/verify for API sessions (app/deps.py reads them).
    - Fernet encryption for the developer token, OAuth client secret,
      refresh token and cached access token kept in
      user_google_ads_credentials.

WHY:
    A leaked database dump must not hand out working Google Ads access.
    TOKEN_ENCRYPTION_KEY may list several comma-separated keys: the first
    encrypts, all of them decrypt, so keys can be rotated without
    re-entering every user's credentials.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from jose import jwt

from app.utils.env import env_int, require_env

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
JWT_SECRET = require_env("JWT_SECRET")
JWT_EXPIRES_MINUTES = env_int("JWT_EXPIRES_MINUTES", 60 * 24 * 7)


def _build_cipher(raw_keys: str) -> MultiFernet:
    keys: List[Fernet] = []
    for position, key in enumerate(k.strip() for k in raw_keys.split(",")):
        if not key:
            continue
        try:
            keys.append(Fernet(key))
        except (ValueError, TypeError) as exc:
            raise RuntimeError(
                f"TOKEN_ENCRYPTION_KEY entry {position} is not a URL-safe base64-encoded 32-byte key. "
                "Generate one with Fernet.generate_key()."
            ) from exc
    if not keys:
        raise RuntimeError("TOKEN_ENCRYPTION_KEY is empty.")
    return MultiFernet(keys)


_cipher = _build_cipher(require_env("TOKEN_ENCRYPTION_KEY"))


def encrypt_secret(plaintext: str, *, context: str) -> str:
    """Encrypt one credential field for storage.

    `context` names the field and owner for logs, e.g. "user:42:refresh".
    The secret itself is never logged.
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty secret.")
    ciphertext = _cipher.encrypt(plaintext.encode("utf-8")).decode("utf-8")
    logger.debug("[CREDENTIALS] Encrypted %s", context)
    return ciphertext


def decrypt_secret(ciphertext: str, *, context: str) -> str:
    """Decrypt a stored credential field.

    Raises:
        ValueError: Empty value, or no configured key can decrypt it
            (typically a rotated-out key).
    """
    if not ciphertext:
        raise ValueError("Cannot decrypt empty secret.")
    try:
        return _cipher.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        logger.error("[CREDENTIALS] Stored secret %s cannot be decrypted with the configured keys", context)
        raise ValueError("Unable to decrypt stored token.") from exc


def create_access_token(subject: str, expires_minutes: int | None = None) -> str:
    """Signed session JWT; `subject` is the user's email."""
    now = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=JWT_EXPIRES_MINUTES if expires_minutes is None else expires_minutes)
    claims: Dict[str, Any] = {"sub": subject, "iat": int(now.timestamp()), "exp": int((now + lifetime).timestamp())}
    return jwt.encode(claims, JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Claims of a valid session JWT. Raises jose.JWTError otherwise."""
    return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
