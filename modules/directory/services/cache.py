"""
Employee Cache Service.

Local persistent mirror of the remote employees table and the queue of
mutations made while offline, stored in the cache database (SQLite via
aiosqlite).

Failure Policy:
    Reads log the error and degrade to an empty result so the directory can
    still render. Writes log and re-raise; an offline mutation that could not
    be stored must not be reported as saved.
"""

import logging
import time
from typing import Any, Iterable, Literal, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modules.directory.models import CachedEmployee, PendingOperation

logger = logging.getLogger(__name__)

OperationType = Literal["create", "update", "delete"]

# Stay well below SQLite's bound-parameter limit
UPSERT_BATCH_SIZE = 100


class EmployeeCache:
    """
    Async access to the employee mirror and the pending-operation queue.

    Args:
        session_factory: async_sessionmaker bound to the cache engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _row(employee: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": str(employee["id"]),
            "employee_number": employee.get("employee_number"),
            "email": employee.get("email"),
            "data": employee,
        }

    async def _upsert(self, session: AsyncSession, employees: list[dict[str, Any]]) -> None:
        for i in range(0, len(employees), UPSERT_BATCH_SIZE):
            batch = [self._row(e) for e in employees[i:i + UPSERT_BATCH_SIZE]]
            stmt = sqlite_insert(CachedEmployee).values(batch)
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={
                    "employee_number": stmt.excluded.employee_number,
                    "email": stmt.excluded.email,
                    "data": stmt.excluded.data,
                    "updated_at": func.now(),
                },
            )
            await session.execute(stmt)

    # =========================================================================
    # Employee mirror
    # =========================================================================

    async def save_to_cache(self, employees: Iterable[dict[str, Any]]) -> None:
        """Replace the whole mirror with ``employees`` in one transaction."""
        records = list(employees)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(delete(CachedEmployee))
                    if records:
                        await self._upsert(session, records)
        except SQLAlchemyError as e:
            logger.error(f"Error saving to cache: {e}")
            raise
        logger.debug(f"Cached {len(records)} employee(s)")

    async def get_from_cache(self) -> list[dict[str, Any]]:
        """All mirrored records, ordered by employee number."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(CachedEmployee.data).order_by(CachedEmployee.employee_number)
                )
                return [dict(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error reading from cache: {e}")
            return []

    async def get_cached_employee(self, employee_id: str) -> dict[str, Any] | None:
        """One mirrored record, or None."""
        try:
            async with self._session_factory() as session:
                row = await session.get(CachedEmployee, str(employee_id))
                return dict(row.data) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading employee {employee_id} from cache: {e}")
            return None

    async def clear_cache(self) -> None:
        """Remove every mirrored record."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(delete(CachedEmployee))
        except SQLAlchemyError as e:
            logger.error(f"Error clearing cache: {e}")
            raise

    async def add_to_local_db(self, employee: dict[str, Any]) -> None:
        """Put one record (insert or replace)."""
        await self._put(employee, "adding to")

    async def update_in_local_db(self, employee: dict[str, Any]) -> None:
        """Put one record (insert or replace)."""
        await self._put(employee, "updating in")

    async def _put(self, employee: dict[str, Any], verb: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._upsert(session, [employee])
        except SQLAlchemyError as e:
            logger.error(f"Error {verb} local DB: {e}")
            raise

    async def delete_from_local_db(self, employee_id: str) -> None:
        """Remove one record by id. Missing ids are ignored."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        delete(CachedEmployee).where(CachedEmployee.id == str(employee_id))
                    )
        except SQLAlchemyError as e:
            logger.error(f"Error deleting from local DB: {e}")
            raise

    # =========================================================================
    # Pending operations
    # =========================================================================

    async def add_pending_operation(
        self,
        operation: OperationType,
        employee: dict[str, Any],
    ) -> int:
        """
        Append a mutation to the queue.

        Returns:
            The queue key assigned to the operation.
        """
        entry = PendingOperation(
            operation=operation,
            employee=employee,
            timestamp=int(time.time() * 1000),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(entry)
                    await session.flush()
                    key = entry.id
        except SQLAlchemyError as e:
            logger.error(f"Error adding pending operation: {e}")
            raise
        logger.info(f"Queued offline {operation} (#{key})")
        return key

    async def get_pending_operations(self) -> list[dict[str, Any]]:
        """Queued operations in replay order."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PendingOperation).order_by(PendingOperation.id)
                )
                return [
                    {
                        "id": op.id,
                        "operation": op.operation,
                        "employee": dict(op.employee),
                        "timestamp": op.timestamp,
                    }
                    for op in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            logger.error(f"Error getting pending operations: {e}")
            return []

    async def count_pending_operations(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(PendingOperation)
                )
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            logger.error(f"Error counting pending operations: {e}")
            return 0

    async def clear_pending_operations(self, up_to_id: Optional[int] = None) -> None:
        """
        Drop queued operations.

        Args:
            up_to_id: Only drop operations with a key up to and including
                this one. Operations queued after a replay started survive.
        """
        stmt = delete(PendingOperation)
        if up_to_id is not None:
            stmt = stmt.where(PendingOperation.id <= up_to_id)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error clearing pending operations: {e}")
            raise
