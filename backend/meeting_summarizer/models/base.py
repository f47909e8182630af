from __future__ import annotations

from typing import Optional

from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine

from meeting_summarizer.config import get_settings

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        # SQLite with WAL enabled
        _engine = create_engine(
            f"sqlite:///{settings.database_path}", connect_args={"check_same_thread": False}
        )
    return _engine


def dispose_engine() -> None:
    """Drop the cached engine so the next call picks up current settings."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None


def init_db() -> None:
    # Import models so their tables are registered on the metadata
    from meeting_summarizer.models import meeting  # noqa: F401

    engine = get_engine()
    with engine.begin() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
        conn.exec_driver_sql("PRAGMA synchronous=NORMAL;")
    SQLModel.metadata.create_all(engine)
