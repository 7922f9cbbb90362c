"""Outbound synchronisation of ingested leaves to other systems."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

from .types import SourceType

if TYPE_CHECKING:
    from .ingestion import LeaveSummary


class OutboundSync(Protocol):
    def sync(self, leave: LeaveSummary, originating_source: SourceType) -> None:
        ...


class LoggingOutboundSync:
    """Default sync target: records what would be pushed to downstream systems."""

    def sync(self, leave: LeaveSummary, originating_source: SourceType) -> None:
        structlog.get_logger().info(
            "leave_outbound_sync",
            leave_id=leave.id,
            originating_source=SourceType(originating_source).value,
            user_id=leave.user_id,
            start_date=leave.start_date.isoformat(),
            end_date=leave.end_date.isoformat(),
            leave_type=leave.type.value,
            status=leave.status.value,
            source_refs=len(leave.source_refs),
        )
