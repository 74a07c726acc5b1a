"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data access for one ORM model following SQLAlchemy 2.0
async patterns. Repositories receive the session from the calling service
and never open, commit or roll back transactions themselves.

Design Notes
------------
This base repository provides:
- Primary-key reads, with or without ``SELECT ... FOR UPDATE``
- Filtered lookups with ordering and limits
- Existence and counting utilities
- add / delete / flush / refresh pass-throughs
- Debug-level structured logging for every call

What this class does NOT do:
- Manage transactions (services and DatabaseService handle that)
- Contain business logic

Usage
-----
    class ParticipationRepository(BaseRepository[Participation]):
        async def find_for_user(self, session, match_id, user_id):
            return await self.find_one_where(
                session,
                Participation.match_id == match_id,
                Participation.user_id == user_id,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key (no lock)."""
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": str(id_value),
                "found": instance is not None,
            },
        )

        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """
        Get a single record by primary key with ``SELECT ... FOR UPDATE``.

        ``populate_existing`` makes sure a row already present in the
        identity map is reloaded under the lock.
        """
        stmt = (
            select(self.model_class)
            .where(self.model_class.id == id_value)  # type: ignore[attr-defined]
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get_for_update: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": str(id_value),
                "found": instance is not None,
                "locked": True,
            },
        )

        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """Find a single record matching conditions, or None."""
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering expressions
            for_update: If True, use SELECT FOR UPDATE
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if for_update:
            stmt = stmt.with_for_update()

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )

        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = int(result.scalar_one())

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )

        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)

        self.log.debug(
            f"Repository.delete: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()

    async def refresh(
        self,
        session: AsyncSession,
        instance: T,
        attribute_names: Optional[List[str]] = None,
    ) -> T:
        """Reload ``instance`` (or just ``attribute_names``) from the database."""
        await session.refresh(instance, attribute_names=attribute_names)
        return instance
