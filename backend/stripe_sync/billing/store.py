"""Data store accessor used by the webhook projection handlers.

Handlers only see ``select`` / ``select_single`` / ``insert`` / ``update`` keyed
by Stripe identifiers. ``insert`` is insert-or-replace on conflict so a
redelivered create event overwrites instead of failing.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import inspect, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stripe_sync.database import Base
from stripe_sync.exceptions import RecordLookupError, StoreError, StoreNotConfiguredError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DataStore:
    """Identifier-keyed reads and writes over one async session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def select(self, model: type[ModelT], **filters: Any) -> list[ModelT]:
        stmt = (
            select(model)
            .filter_by(**filters)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"select from {model.__tablename__} failed") from e
        return list(result.scalars().all())

    async def select_single(self, model: type[ModelT], **filters: Any) -> ModelT:
        """Return the only row matching ``filters``; zero or several is a lookup error."""
        rows = await self.select(model, **filters)
        if len(rows) != 1:
            raise RecordLookupError(model.__tablename__, filters, len(rows))
        return rows[0]

    async def insert(
        self,
        model: type[ModelT],
        row: dict[str, Any],
        conflict_keys: Sequence[str] | None = None,
    ) -> None:
        """Insert ``row``, replacing the existing row on a key conflict.

        ``conflict_keys`` defaults to the primary key and must name a unique
        constraint otherwise.
        """
        if conflict_keys is None:
            conflict_keys = [col.key for col in inspect(model).primary_key]

        dialect = self.session.get_bind().dialect.name
        dialect_insert = _UPSERT_INSERTS.get(dialect)
        if dialect_insert is None:
            raise StoreError(f"Upsert is not supported on {dialect}")

        stmt = dialect_insert(model).values(**row)
        replace = {
            key: stmt.excluded[key] for key in row if key not in conflict_keys
        }
        if replace:
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=replace)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_keys))

        try:
            await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"insert into {model.__tablename__} failed") from e

    async def update(
        self, model: type[ModelT], patch: dict[str, Any], **filters: Any
    ) -> int:
        """Apply ``patch`` to rows matching ``filters``; return how many matched."""
        stmt = (
            update(model)
            .filter_by(**filters)
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"update of {model.__tablename__} failed") from e
        return result.rowcount


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None,
) -> AsyncIterator[AsyncSession]:
    """One transaction per webhook: commit on success, roll back on any error."""
    if factory is None:
        raise StoreNotConfiguredError("DATABASE_URL is not configured")

    async with factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StoreError("Commit failed") from e
        except Exception:
            await session.rollback()
            raise
