"""Storage backends for the ledger and the factory that picks one from settings."""

from __future__ import annotations

import logging

from ..core.config import AppSettings
from ..db.migrate import run_migrations
from ..db.session import Base, build_engine, build_session_factory

# Importing the SQLAlchemy models registers them with the metadata. Without
# this step ``Base.metadata.create_all`` would not know about our tables.
from ..models import customer as _customer  # noqa: F401
from ..models import inventory as _inventory  # noqa: F401
from ..models import order as _order  # noqa: F401
from ..models import product as _product  # noqa: F401
from .interface import Repository
from .memory import InMemoryRepository
from .rest import RestRepository
from .sql import SqlRepository

logger = logging.getLogger(__name__)


def build_repository(settings: AppSettings) -> Repository:
    """Construct the backend named by ``REPOSITORY_BACKEND``."""

    backend = settings.REPOSITORY_BACKEND
    logger.info("repository.selected", extra={"extra_data": {"backend": backend}})
    if backend == "memory":
        return InMemoryRepository()
    if backend == "rest":
        return RestRepository(
            settings.REMOTE_LEDGER_URL,
            api_key=settings.REMOTE_LEDGER_API_KEY,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
        )
    engine = build_engine(settings.DB_URL)
    # ``run_migrations`` upgrades older files first, ``create_all`` fills in
    # anything still missing.
    run_migrations(engine)
    Base.metadata.create_all(bind=engine)
    return SqlRepository(build_session_factory(engine))


__all__ = [
    "InMemoryRepository",
    "Repository",
    "RestRepository",
    "SqlRepository",
    "build_repository",
]
