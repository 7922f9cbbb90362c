"""Leave domain types and ingestion requests.

Persistence-backed services live in :mod:`.ingestion` and :mod:`.storage`.
"""

from .requests import DateRangePayload, LeaveIngestionCommand, LeaveIngestionRequest
from .types import DateRange, LeaveDurationType, LeaveStatus, LeaveType, SourceType

__all__ = [
    "DateRange",
    "DateRangePayload",
    "LeaveDurationType",
    "LeaveIngestionCommand",
    "LeaveIngestionRequest",
    "LeaveStatus",
    "LeaveType",
    "SourceType",
]
