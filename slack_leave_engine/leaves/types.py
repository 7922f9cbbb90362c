"""Value types shared by the leave domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


class LeaveType(str, Enum):
    ANNUAL_LEAVE = "ANNUAL_LEAVE"
    OPTIONAL_HOLIDAY = "OPTIONAL_HOLIDAY"


class LeaveStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"


class LeaveDurationType(str, Enum):
    FULL_DAY = "FULL_DAY"
    FIRST_HALF = "FIRST_HALF"
    SECOND_HALF = "SECOND_HALF"

    @property
    def is_half_day(self) -> bool:
        return self is not LeaveDurationType.FULL_DAY


class SourceType(str, Enum):
    SLACK = "SLACK"
    WEB = "WEB"
    CALENDAR = "CALENDAR"
    KIMAI = "KIMAI"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "DateRange") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date
