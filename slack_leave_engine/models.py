"""SQLAlchemy models for leaves and their source references."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import List
from uuid import uuid4

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slack_leave_engine.db import Base
from slack_leave_engine.leaves.types import (
    DateRange,
    LeaveDurationType,
    LeaveStatus,
    LeaveType,
    SourceType,
)


def _new_id() -> str:
    return str(uuid4())


class Leave(Base):
    """A user's absence over an inclusive date range."""

    __tablename__ = "leaves"
    __table_args__ = (
        Index("ix_leaves_user_dates", "user_id", "start_date", "end_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[LeaveType] = mapped_column(Enum(LeaveType, native_enum=False, length=32), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(Enum(LeaveStatus, native_enum=False, length=32), nullable=False)
    duration_type: Mapped[LeaveDurationType] = mapped_column(
        Enum(LeaveDurationType, native_enum=False, length=16),
        nullable=False,
        default=LeaveDurationType.FULL_DAY,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    source_refs: Mapped[List["LeaveSourceRef"]] = relationship(
        "LeaveSourceRef",
        back_populates="leave",
        cascade="all, delete-orphan",
        order_by="LeaveSourceRef.created_at",
    )

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    def add_source_ref(self, source_type: SourceType, source_id: str) -> "LeaveSourceRef":
        """Attach a source reference unless the same (type, id) is already present."""

        for existing in self.source_refs:
            if existing.source_type == source_type and existing.source_id == source_id:
                return existing
        ref = LeaveSourceRef(source_type=source_type, source_id=source_id)
        self.source_refs.append(ref)
        return ref

    def __repr__(self) -> str:
        return (
            f"Leave(id={self.id!r}, user_id={self.user_id!r}, start_date={self.start_date}, "
            f"end_date={self.end_date}, type={self.type}, status={self.status}, duration_type={self.duration_type})"
        )


class LeaveSourceRef(Base):
    """Idempotency key linking a leave to the external record that produced it."""

    __tablename__ = "leave_source_refs"
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_leave_source_refs_type_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    leave_id: Mapped[str] = mapped_column(ForeignKey("leaves.id", ondelete="CASCADE"), nullable=False, index=True)
    source_type: Mapped[SourceType] = mapped_column(Enum(SourceType, native_enum=False, length=32), nullable=False)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    leave: Mapped[Leave] = relationship("Leave", back_populates="source_refs")
