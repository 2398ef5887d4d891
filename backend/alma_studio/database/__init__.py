"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from alma_studio.core.config import settings

logger = logging.getLogger(__name__)


def build_engine_kwargs(db_url: str) -> Dict[str, Any]:
    """Engine options per dialect."""
    kwargs: Dict[str, Any] = {"echo": settings.sql_echo, "future": True}
    if db_url.startswith("sqlite"):
        # Sessions are request-scoped but may be handed across threads in tests
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(pool_pre_ping=True, pool_recycle=300, pool_size=5, max_overflow=5)
    return kwargs


def create_db_engine(db_url: str) -> Engine:
    new_engine = create_engine(db_url, **build_engine_kwargs(db_url))

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


engine: Engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create every table registered on ``Base``."""
    from alma_studio import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(bind=bind or engine)
