"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction for database operations
following SQLAlchemy 2.0 async patterns. Repositories encapsulate data access
logic and provide a consistent interface for the services.

Design Notes
------------
This base repository provides:
- Type-safe lookups by primary key or by conditions
- Dialect-aware insert-if-absent (`ON CONFLICT DO NOTHING`)
- Full structured logging

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic
- Perform validation beyond type safety

Usage
-----
    class AchievementLogRepository(BaseRepository[AchievementUnlock]):
        async def unlocked_for_user(
            self, session: AsyncSession, user_id: str
        ) -> list[AchievementUnlock]:
            return await self.find_many_where(
                session,
                AchievementUnlock.user_id == user_id,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import inspect, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        """
        Initialize repository with model class and logger.

        Args:
            model_class: The SQLAlchemy model class
            logger: Structured logger instance
        """
        self.model_class = model_class
        self.log = logger

    @property
    def _primary_key(self):
        return inspect(self.model_class).primary_key[0]

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """
        Get a single record by primary key (no lock).

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(self._primary_key == id_value)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )

        return instances

    def _dialect_insert(self, session: AsyncSession):
        dialect = session.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from progression.core.exceptions import ConfigurationError

            raise ConfigurationError(
                "database_dialect",
                f"insert-if-absent is not supported on dialect '{dialect}'",
            )

        return insert(self.model_class)

    async def insert_if_absent(
        self,
        session: AsyncSession,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
    ) -> bool:
        """
        Insert a row unless one with the same `conflict_columns` exists.

        Uses `INSERT ... ON CONFLICT (...) DO NOTHING`, so concurrent callers
        never see an IntegrityError for the conflicting key.

        Args:
            session: Database session inside a transaction
            values: Column values for the new row
            conflict_columns: Columns of the unique key that arbitrates races

        Returns:
            True if this call inserted the row, False if it already existed
        """
        stmt = (
            self._dialect_insert(session)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = await session.execute(stmt)
        inserted = result.rowcount == 1

        self.log.debug(
            f"Repository.insert_if_absent: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "inserted": inserted,
            },
        )

        return inserted
