"""Structural and overlap invariants enforced before a leave is persisted."""

from __future__ import annotations

from typing import Protocol, Sequence

import structlog

from slack_leave_engine.errors import DomainValidationError, OverlappingLeaveError
from slack_leave_engine.models import Leave

from .types import DateRange, LeaveDurationType


class OverlapQuery(Protocol):
    def find_overlapping(
        self, user_id: str, date_range: DateRange, exclude_id: str | None = None
    ) -> Sequence[Leave]:
        ...


_REQUIRED_FIELDS = (
    ("user_id", "User id"),
    ("start_date", "Start date"),
    ("end_date", "End date"),
    ("type", "Leave type"),
    ("status", "Leave status"),
    ("duration_type", "Duration type"),
)


def validate_for_persistence(leave: Leave | None) -> None:
    """Raise :class:`DomainValidationError` when *leave* breaks a structural rule."""

    if leave is None:
        raise DomainValidationError("Leave cannot be null")

    for attribute, label in _REQUIRED_FIELDS:
        value = getattr(leave, attribute, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise DomainValidationError(f"{label} cannot be empty")

    if leave.start_date > leave.end_date:
        raise DomainValidationError("Start date cannot be after end date")

    if LeaveDurationType(leave.duration_type).is_half_day and leave.start_date != leave.end_date:
        raise DomainValidationError("Half-day leaves must have the same start and end date")

    if leave.id is None and not leave.source_refs:
        raise DomainValidationError("New leaves must have at least one source reference")


def validate_no_overlap(candidate: Leave | None, *, store: OverlapQuery) -> None:
    """Raise :class:`OverlappingLeaveError` if *candidate* overlaps another leave of its user.

    When the candidate already has an id it is excluded from the search, so an
    update never conflicts with its own stored version.
    """

    if candidate is None:
        raise DomainValidationError("Leave cannot be null")

    log = structlog.get_logger().bind(user_id=candidate.user_id, leave_id=candidate.id)
    date_range = DateRange(candidate.start_date, candidate.end_date)
    overlapping = store.find_overlapping(candidate.user_id, date_range, exclude_id=candidate.id)
    if not overlapping:
        log.debug("leave_overlap_check_passed", start_date=str(date_range.start_date), end_date=str(date_range.end_date))
        return

    existing = overlapping[0]
    log.info("leave_overlap_detected", conflicting_leave_id=existing.id)
    raise OverlappingLeaveError(
        conflicting_leave_id=existing.id,
        user_id=candidate.user_id,
        start_date=existing.start_date,
        end_date=existing.end_date,
    )
