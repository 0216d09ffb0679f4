"""
Employee Cache Models.

Local mirror of the remote employees table plus the queue of mutations
made while offline. The full record is kept as JSON so the mirror stays
schema-agnostic; id, employee_number and email are lifted into indexed
columns for lookups.
"""

from typing import Any

from sqlalchemy import JSON, BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database.base import Base, TimestampMixin


class CachedEmployee(Base, TimestampMixin):
    """
    Mirror of one remote employee record.

    Attributes:
        id: Remote UUID (or client-generated UUID for offline creates).
        employee_number: Unique business identifier.
        email: Optional work email.
        data: Full record as returned by the backend, including the
            embedded manager {first_name, last_name}.
    """

    __tablename__ = "directory_cached_employee"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="Employee UUID",
    )
    employee_number: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Business identifier (unique remotely)",
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Work email (unique remotely)",
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Full employee record",
    )

    def __repr__(self) -> str:
        return f"<CachedEmployee(id={self.id}, employee_number={self.employee_number})>"


class PendingOperation(Base):
    """
    Queued mutation awaiting replay against the remote store.

    Replay order is ascending ``id``.
    """

    __tablename__ = "directory_pending_operation"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    operation: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="create | update | delete",
    )
    employee: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Employee payload (delete needs only id)",
    )
    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
        comment="Enqueue time in epoch milliseconds",
    )

    def __repr__(self) -> str:
        return f"<PendingOperation(id={self.id}, operation={self.operation})>"
