"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tuition_ledger.models import Base


def create_ledger_engine(database_url: str) -> Engine:
    """Create an engine (SQLite uses StaticPool for simplicity in dev/test).

    Billing runs isolate each member in a SAVEPOINT, which pysqlite only
    honours when SQLAlchemy emits BEGIN itself.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine
    return create_engine(database_url, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create every ledger table that does not exist yet."""
    Base.metadata.create_all(engine)


def create_session(database_url: str) -> Generator[Session, None, None]:
    """
    Create a database session context manager.

    Args:
        database_url: SQLAlchemy database URL (e.g., "sqlite:///./tuition_ledger.db")

    Yields:
        SQLAlchemy Session for database operations

    Example:
        ```python
        for session in create_session("sqlite:///./tuition_ledger.db"):
            members = session.query(Member).all()
        ```
    """
    engine = create_ledger_engine(database_url)
    init_db(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        engine.dispose()


__all__ = ["create_ledger_engine", "init_db", "create_session"]
