"""SQLAlchemy engine and session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# ``Base`` is the parent class for every SQLAlchemy model defined in rental_ledger/models.
Base = declarative_base()


def build_engine(db_url: str) -> Engine:
    """Create an engine for ``db_url``.

    SQLite connections are shared across worker threads, and a pure in-memory
    SQLite database is pinned to a single connection so every session sees the
    same tables.
    """

    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True)
    connect_args = {"check_same_thread": False}
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(db_url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(db_url, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False lets repositories convert rows after the commit.
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
