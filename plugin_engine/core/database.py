"""Database engine and session management utilities."""

from __future__ import annotations

import logging
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from plugin_engine.core.config import EngineSettings

LOGGER = logging.getLogger(__name__)


def _get_database_url() -> str:
    """Read the database URL from the environment, falling back to defaults."""
    database_url = EngineSettings.from_env().database_url
    if not database_url:
        raise RuntimeError("DATABASE_URL environment variable must be configured")
    return database_url


def create_engine_instance() -> Engine:
    """Instantiate the SQLModel engine for the configured database."""
    database_url = _get_database_url()
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine: Engine = create_engine_instance()


def create_db_and_tables() -> None:
    """Create tables for every SQLModel table model."""
    # Registers the table models on SQLModel.metadata.
    from plugin_engine.models import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    LOGGER.info("Database tables created successfully")


def get_session() -> Generator[Session, None, None]:
    """Provide a session generator compatible with FastAPI dependencies."""
    with Session(engine) as session:
        yield session


__all__ = ["engine", "get_session", "create_db_and_tables"]
