"""Database engine, sessions and schema creation.

WHAT:
    SQLAlchemy engine + session factory, the FastAPI `get_db` dependency
    and `init_db()` which creates missing tables on startup.

WHY:
    Persisted state is small (users, encrypted Google Ads credentials, the
    MCC hierarchy and the optimization audit log), so tables are created
    from the models instead of being migrated.

USAGE:
    from app.database import get_db

    @router.get("/accounts/hierarchy")
    def get_hierarchy(db: Session = Depends(get_db)):
        ...
"""

import logging
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.utils.env import require_env

logger = logging.getLogger(__name__)

DATABASE_URL = require_env("DATABASE_URL")


def _engine_options(url: str) -> Dict[str, Any]:
    # SQLite (local dev, tests) has no connection pool settings
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 5, "max_overflow": 10, "pool_recycle": 3600, "pool_pre_ping": True}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# Base is defined in app.models to ensure a single registry across the app
from .models import Base  # noqa: E402


def init_db() -> None:
    """Create any missing tables. Existing tables are left untouched."""
    Base.metadata.create_all(bind=engine)
    logger.info("[DB] Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for FastAPI dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
