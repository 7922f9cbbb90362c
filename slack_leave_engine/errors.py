"""Exception hierarchy shared by the webhook, domain and delivery layers."""

from __future__ import annotations

from datetime import date
from enum import Enum


class LeaveEngineError(Exception):
    """Base class for every error raised deliberately by the engine."""


class AuthenticationError(LeaveEngineError):
    """The inbound request could not be authenticated."""


class VerificationFailure(str, Enum):
    MISSING_FIELD = "missing_field"
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    STALE_REQUEST = "stale_request"
    SIGNATURE_MISMATCH = "signature_mismatch"


class SignatureVerificationError(AuthenticationError):
    """Raised when a Slack signature or timestamp header fails verification."""

    def __init__(self, reason: VerificationFailure, message: str | None = None) -> None:
        super().__init__(message or reason.value.replace("_", " "))
        self.reason = reason


class ProtocolError(LeaveEngineError):
    """The inbound request is authentic but does not follow the Slack protocol."""


class PayloadFailure(str, Enum):
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_TYPE_FIELD = "missing_type_field"
    UNSUPPORTED_TYPE = "unsupported_type"
    INVALID_FIELD = "invalid_field"


class PayloadParseError(ProtocolError):
    """Raised when a webhook body cannot be decoded into an interaction event."""

    def __init__(self, reason: PayloadFailure, message: str, *, block_id: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.block_id = block_id


class InvalidStateError(ProtocolError):
    """Raised when correlation state carried through Slack is missing or corrupt."""


class DomainValidationError(LeaveEngineError, ValueError):
    """A leave violates one of its structural invariants."""


class ConflictError(LeaveEngineError):
    """The requested change conflicts with data that already exists."""


class OverlappingLeaveError(ConflictError):
    """Raised when a leave overlaps another leave of the same user."""

    def __init__(
        self,
        *,
        conflicting_leave_id: str,
        user_id: str,
        start_date: date,
        end_date: date,
    ) -> None:
        super().__init__(
            f"User {user_id} already has a leave from {start_date.isoformat()} to "
            f"{end_date.isoformat()} that overlaps with the requested leave (ID: {conflicting_leave_id})"
        )
        self.conflicting_leave_id = conflicting_leave_id
        self.user_id = user_id
        self.start_date = start_date
        self.end_date = end_date


class TransientDeliveryError(LeaveEngineError):
    """Raised when a message, modal or webhook could not be delivered to Slack."""

    def __init__(self, operation: str, error: str) -> None:
        super().__init__(f"Slack delivery failed for {operation}: {error}")
        self.operation = operation
        self.error = error
