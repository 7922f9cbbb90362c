"""Commands and request models accepted by the ingestion service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import DateRange, LeaveDurationType, LeaveStatus, LeaveType, SourceType


@dataclass(frozen=True)
class LeaveIngestionCommand:
    """Everything needed to create or update one leave from one source record."""

    source_type: SourceType
    source_id: str
    user_id: str
    date_range: DateRange
    type: LeaveType
    status: LeaveStatus = LeaveStatus.APPROVED
    duration_type: LeaveDurationType = LeaveDurationType.FULL_DAY
    reason: str | None = None


class DateRangePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(..., alias="startDate")
    end_date: date | None = Field(None, alias="endDate")

    @model_validator(mode="after")
    def default_end_date(self):
        if self.end_date is None:
            self.end_date = self.start_date
        if self.start_date > self.end_date:
            raise ValueError("startDate cannot be after endDate")
        return self


class LeaveIngestionRequest(BaseModel):
    """JSON body of the direct ingestion API."""

    model_config = ConfigDict(populate_by_name=True)

    source_type: SourceType = Field(..., alias="sourceType")
    source_id: str = Field(..., alias="sourceId", min_length=1, max_length=255)
    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    date_range: DateRangePayload = Field(..., alias="dateRange")
    type: LeaveType
    status: LeaveStatus = LeaveStatus.APPROVED
    duration_type: LeaveDurationType = Field(LeaveDurationType.FULL_DAY, alias="durationType")

    @field_validator("source_id", "user_id")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    def to_command(self) -> LeaveIngestionCommand:
        return LeaveIngestionCommand(
            source_type=self.source_type,
            source_id=self.source_id,
            user_id=self.user_id,
            date_range=DateRange(self.date_range.start_date, self.date_range.end_date),
            type=self.type,
            status=self.status,
            duration_type=self.duration_type,
        )
