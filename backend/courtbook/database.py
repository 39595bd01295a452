import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from courtbook.config import SQL_ECHO, get_policy

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./courtbook.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
# pysqlite "timeout" is the busy wait (seconds) before "database is locked"
_connect_args = (
    {"check_same_thread": False, "timeout": get_policy().lock_timeout_ms / 1000.0} if _is_sqlite else {}
)

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=SQL_ECHO,
    connect_args=_connect_args,
)


def enable_sqlite_wal(target: Engine) -> None:
    """Register a connect hook turning on WAL so readers never block the writer."""

    @event.listens_for(target, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
        finally:
            cursor.close()


if _is_sqlite and ":memory:" not in DATABASE_URL:
    enable_sqlite_wal(engine)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from courtbook.models.booking import Booking  # noqa: F401

    SQLModel.metadata.create_all(engine)
