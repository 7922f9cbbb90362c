"""Session-bound storage for leaves and their source references."""

from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from slack_leave_engine.models import Leave, LeaveSourceRef

from .types import DateRange, SourceType


class LeaveStore:
    """Query and persist leaves inside the caller's transaction."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def save(self, leave: Leave) -> Leave:
        """Add *leave* to the session and flush so it receives an id."""

        self._session.add(leave)
        self._session.flush()
        return leave

    def find_by_id(self, leave_id: str) -> Leave | None:
        return self._session.get(Leave, leave_id, options=[selectinload(Leave.source_refs)])

    def find_overlapping(
        self,
        user_id: str,
        date_range: DateRange,
        exclude_id: str | None = None,
    ) -> List[Leave]:
        """Return the user's leaves sharing at least one day with *date_range*."""

        stmt = select(Leave).where(
            Leave.user_id == user_id,
            Leave.start_date <= date_range.end_date,
            Leave.end_date >= date_range.start_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(Leave.id != exclude_id)
        stmt = stmt.order_by(Leave.start_date, Leave.id)
        return list(self._session.execute(stmt).scalars())

    def find_by_source_ref(self, source_type: SourceType, source_id: str) -> Leave | None:
        stmt = (
            select(Leave)
            .join(LeaveSourceRef, LeaveSourceRef.leave_id == Leave.id)
            .where(LeaveSourceRef.source_type == source_type, LeaveSourceRef.source_id == source_id)
            .options(selectinload(Leave.source_refs))
        )
        return self._session.execute(stmt).scalars().first()

    def source_ref_exists(self, source_type: SourceType, source_id: str) -> bool:
        stmt = select(LeaveSourceRef.id).where(
            LeaveSourceRef.source_type == source_type,
            LeaveSourceRef.source_id == source_id,
        )
        return self._session.execute(stmt).first() is not None
