"""Async SQLAlchemy engine, session factory, and declarative base."""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stripe_sync.config import settings


def _create_engine() -> AsyncEngine | None:
    """Create the engine, or None when no database URL is configured."""
    if not settings.database_url:
        return None
    return create_async_engine(
        settings.async_database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = _create_engine()

async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine is not None
    else None
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
    """Return the process-wide session factory for FastAPI dependency injection.

    Resolving the dependency never fails; an unconfigured store only fails
    once a handler opens a session through ``session_scope``.
    """
    return async_session_factory
