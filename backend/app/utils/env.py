"""Environment helpers shared by the modules that read config at import time.

WHAT:
    `.env` loading plus small typed accessors for mandatory and integer
    variables.
WHY:
    app.database and app.security resolve their configuration before the
    pydantic Settings object exists, so they need plain os.environ access
    with the same fail-fast behaviour.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# backend/.env, independent of the working directory uvicorn was started from
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


def load_env_file() -> bool:
    """Load backend/.env into os.environ without overwriting exported values.

    Returns True when the file exists.
    """
    if not ENV_FILE.exists():
        logger.debug("No .env file at %s", ENV_FILE)
        return False
    load_dotenv(ENV_FILE, override=False)
    logger.info("Loaded %s (exported variables take precedence)", ENV_FILE)
    return True


def require_env(name: str) -> str:
    """Value of a mandatory variable, loading .env once if it is missing."""
    value = os.getenv(name)
    if not value and load_env_file():
        value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable: {name}. "
            "Export it or add it to backend/.env."
        )
    return value


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
