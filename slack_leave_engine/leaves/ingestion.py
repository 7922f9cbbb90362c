"""Idempotent leave ingestion keyed by source reference."""

from __future__ import annotations

import threading
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, ContextManager, Dict, Generator, Tuple

import structlog
from sqlalchemy import text
from sqlalchemy.orm import Session

from slack_leave_engine.db import session_scope
from slack_leave_engine.errors import DomainValidationError
from slack_leave_engine.models import Leave

from .requests import LeaveIngestionCommand
from .storage import LeaveStore
from .sync import LoggingOutboundSync, OutboundSync
from .types import LeaveDurationType, LeaveStatus, LeaveType, SourceType
from .validation import validate_for_persistence, validate_no_overlap

DEFAULT_LOCK_STRIPES = 64


@dataclass(frozen=True)
class LeaveSummary:
    """Detached snapshot of a stored leave."""

    id: str
    user_id: str
    start_date: date
    end_date: date
    type: LeaveType
    status: LeaveStatus
    duration_type: LeaveDurationType
    source_refs: Tuple[Tuple[SourceType, str], ...]

    @classmethod
    def from_leave(cls, leave: Leave) -> "LeaveSummary":
        return cls(
            id=leave.id,
            user_id=leave.user_id,
            start_date=leave.start_date,
            end_date=leave.end_date,
            type=LeaveType(leave.type),
            status=LeaveStatus(leave.status),
            duration_type=LeaveDurationType(leave.duration_type),
            source_refs=tuple((SourceType(ref.source_type), ref.source_id) for ref in leave.source_refs),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "dateRange": {
                "startDate": self.start_date.isoformat(),
                "endDate": self.end_date.isoformat(),
            },
            "type": self.type.value,
            "status": self.status.value,
            "durationType": self.duration_type.value,
            "sourceRefs": [
                {"sourceType": source_type.value, "sourceId": source_id}
                for source_type, source_id in self.source_refs
            ],
        }


class UserLocks:
    """Fixed pool of re-entrant locks; a user id always maps to the same stripe.

    Memory stays constant however many users submit; users sharing a stripe
    serialize with each other.
    """

    def __init__(self, stripes: int = DEFAULT_LOCK_STRIPES) -> None:
        if stripes < 1:
            raise ValueError("stripes must be positive")
        self._stripes: Tuple[threading.RLock, ...] = tuple(threading.RLock() for _ in range(stripes))

    def __len__(self) -> int:
        return len(self._stripes)

    def lock_for(self, user_id: str) -> threading.RLock:
        return self._stripes[zlib.crc32(user_id.encode("utf-8")) % len(self._stripes)]

    @contextmanager
    def hold(self, user_id: str) -> Generator[None, None, None]:
        with self.lock_for(user_id):
            yield


_USER_LOCKS = UserLocks()


def _lock_user_rows(session: Session, user_id: str) -> None:
    """Take a transaction-scoped advisory lock for *user_id* where the database supports it."""

    if session.get_bind().dialect.name == "postgresql":
        session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:user_id))"), {"user_id": user_id})


class LeaveIngestionService:
    """Create or update leaves from external sources without creating duplicates.

    Overlap validation and the write share one transaction, and ingestions for
    the same user are serialised so concurrent submissions see each other.
    """

    def __init__(
        self,
        *,
        outbound_sync: OutboundSync | None = None,
        session_factory: Callable[[], ContextManager[Session]] = session_scope,
        user_locks: UserLocks | None = None,
    ) -> None:
        self._outbound_sync = outbound_sync or LoggingOutboundSync()
        self._session_factory = session_factory
        self._user_locks = user_locks or _USER_LOCKS

    def ingest(self, command: LeaveIngestionCommand) -> LeaveSummary:
        log = structlog.get_logger().bind(
            source_type=command.source_type.value,
            source_id=command.source_id,
            user_id=command.user_id,
        )
        log.info(
            "leave_ingestion_started",
            start_date=command.date_range.start_date.isoformat(),
            end_date=command.date_range.end_date.isoformat(),
        )

        with self._user_locks.hold(command.user_id):
            with self._session_factory() as session:
                _lock_user_rows(session, command.user_id)
                store = LeaveStore(session)

                leave = store.find_by_source_ref(command.source_type, command.source_id)
                if leave is None:
                    if store.source_ref_exists(command.source_type, command.source_id):
                        raise DomainValidationError(
                            f"Source reference {command.source_type.value}:{command.source_id} points to a missing leave"
                        )
                    leave = self._create_leave(command)
                    created = True
                else:
                    self._apply_command(leave, command)
                    created = False

                validate_for_persistence(leave)
                validate_no_overlap(leave, store=store)
                store.save(leave)
                summary = LeaveSummary.from_leave(leave)

        log.info("leave_ingested", leave_id=summary.id, created=created)
        self._perform_outbound_sync(summary, command.source_type)
        return summary

    @staticmethod
    def _create_leave(command: LeaveIngestionCommand) -> Leave:
        leave = Leave(source_refs=[])
        LeaveIngestionService._apply_command(leave, command)
        leave.add_source_ref(command.source_type, command.source_id)
        return leave

    @staticmethod
    def _apply_command(leave: Leave, command: LeaveIngestionCommand) -> None:
        leave.user_id = command.user_id
        leave.start_date = command.date_range.start_date
        leave.end_date = command.date_range.end_date
        leave.type = command.type
        leave.status = command.status
        leave.duration_type = command.duration_type

    def _perform_outbound_sync(self, summary: LeaveSummary, source_type: SourceType) -> None:
        log = structlog.get_logger().bind(leave_id=summary.id)
        try:
            self._outbound_sync.sync(summary, source_type)
        except Exception as exc:
            log.error("leave_outbound_sync_failed", error=str(exc))
            return
        log.info("leave_outbound_sync_completed")
