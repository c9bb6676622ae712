from __future__ import annotations

import logging
from typing import Optional

from src.notetaker.config import settings
from src.notetaker.infra.db.inmemory import InMemorySessionRepository
from src.notetaker.infra.db.models import Base
from src.notetaker.infra.db.repositories import SessionRepository
from src.notetaker.infra.db.session import create_db_engine, create_sqlalchemy_session_factory
from src.notetaker.infra.db.sql_sessions import SqlSessionRepository

logger = logging.getLogger("notetaker.db")


def build_session_repository(database_url: Optional[str] = None) -> SessionRepository:
    """Pick the session store for this process.

    When USE_SQL_REPOS is enabled and a database URL is configured, returns a
    SQL-backed repository (creating tables if needed). In every other case,
    including a misconfigured SQL setup, the in-memory repository is used.
    """

    db_url = database_url or settings.database_url
    if not settings.use_sql_repos and database_url is None:
        return InMemorySessionRepository()

    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; using in-memory sessions")
        return InMemorySessionRepository()

    engine = create_db_engine(db_url)

    # Create tables if they do not exist. In a real deployment this should be
    # handled by migrations, but this is convenient for early setups.
    Base.metadata.create_all(engine)

    logger.info("Using SQL session store at %s", engine.url.render_as_string(hide_password=True))
    return SqlSessionRepository(create_sqlalchemy_session_factory(engine))
