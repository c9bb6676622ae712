from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

SessionFactory = Callable[[], Session]


def create_db_engine(database_url: str) -> Engine:
    return create_engine(database_url, future=True)


def create_sqlalchemy_session_factory(engine: Engine) -> SessionFactory:
    """Build a factory producing SQLAlchemy sessions bound to ``engine``.

    ``expire_on_commit`` is disabled so ORM rows can still be converted to
    domain models after the transaction that loaded them has committed.
    """

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
