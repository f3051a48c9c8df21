"""Database session management."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from marginalia.config import get_settings
from marginalia.db.base import Base

settings = get_settings()


def build_engine(url: str) -> Engine:
    """Create a sync engine. SQLite connections may be used off their creating thread."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Create missing tables. Production schemas are managed by Alembic."""
    from marginalia.db import models  # noqa: F401 - Import models to register them

    Base.metadata.create_all(engine)


# Create engine
engine = build_engine(settings.database_url)

# Session factory
SessionLocal = build_session_factory(engine)
