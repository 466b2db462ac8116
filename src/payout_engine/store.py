"""Thin data-access layer over an async SQLAlchemy session.

Every store failure is surfaced as RemoteStoreError with the driver message so
callers never see raw SQLAlchemy exceptions.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from payout_engine.errors import ConcurrentUpdateError, NotFoundError, RemoteStoreError
from payout_engine.models import Base

M = TypeVar("M", bound=Base)


class PayrollStore:
    """Get, insert, update and list records keyed by id."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, model: type[M], record_id: UUID) -> M:
        """Load a record by primary key.

        Raises:
            NotFoundError: If no record has this id
            RemoteStoreError: If the query fails
        """
        try:
            record = await self.session.get(model, record_id)
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        return record

    async def get_for_update(self, model: type[M], record_id: UUID) -> M:
        """Load a record, bypassing the identity map so the version is current."""
        try:
            result = await self.session.execute(
                select(model)
                .where(model.id == record_id)  # type: ignore[attr-defined]
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        return record

    async def list(
        self,
        model: type[M],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: int | None = None,
    ) -> list[M]:
        """List records matching all criteria."""
        query = select(model).where(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        if limit is not None:
            query = query.limit(limit)
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
        return list(result.scalars().all())

    async def insert(self, record: M) -> M:
        """Add a record and flush it."""
        self.session.add(record)
        await self.flush()
        return record

    async def update(self, record: M, **changes: Any) -> M:
        """Apply attribute changes to a record and flush them."""
        for name, value in changes.items():
            setattr(record, name, value)
        await self.flush()
        return record

    async def delete(self, record: Base) -> None:
        """Delete a record and flush."""
        try:
            await self.session.delete(record)
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
        await self.flush()

    async def flush(self) -> None:
        """Flush pending changes, translating store errors."""
        try:
            await self.session.flush()
        except StaleDataError as e:
            raise ConcurrentUpdateError(
                "Record was modified by another request; reload and retry"
            ) from e
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Run a block in a nested transaction that rolls back on error.

        A flush failure inside the block leaves the outer transaction usable.
        """
        try:
            async with self.session.begin_nested():
                yield
        except SQLAlchemyError as e:
            raise RemoteStoreError(str(e)) from e
