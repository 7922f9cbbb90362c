"""Utilities for validating Slack request signatures."""

from __future__ import annotations

import hmac
import re
import time
from hashlib import sha256

from slack_leave_engine.errors import SignatureVerificationError, VerificationFailure


SIGNATURE_HEADER = "X-Signature"
TIMESTAMP_HEADER = "X-Request-Timestamp"
SLACK_SIGNATURE_HEADER = "X-Slack-Signature"
SLACK_TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
VERSION = "v0"
DEFAULT_TOLERANCE = 60 * 5  # five minutes

# ASCII decimal digits with an optional leading minus.
_TIMESTAMP_PATTERN = re.compile(r"-?[0-9]+")


def compute_signature(signing_secret: str, timestamp: str, body: str | bytes) -> str:
    """Return Slack-compatible signature for the provided payload.

    *body* must be the raw request body exactly as received; bytes are used
    verbatim and text is encoded as UTF-8.
    """

    raw_body = body if isinstance(body, bytes) else body.encode("utf-8")
    basestring = f"{VERSION}:{timestamp}:".encode("utf-8") + raw_body
    secret = signing_secret.encode("utf-8")
    digest = hmac.new(secret, basestring, sha256).hexdigest()
    return f"{VERSION}={digest}"


def verify_request(
    *,
    signing_secret: str,
    timestamp: str | None,
    body: str | bytes,
    signature: str | None,
    tolerance: int = DEFAULT_TOLERANCE,
) -> None:
    """Raise :class:`SignatureVerificationError` unless the request is authentic and fresh."""

    if not timestamp or not signature:
        raise SignatureVerificationError(
            VerificationFailure.MISSING_FIELD, "Missing signature or timestamp header"
        )

    if not isinstance(timestamp, str) or _TIMESTAMP_PATTERN.fullmatch(timestamp) is None:
        raise SignatureVerificationError(VerificationFailure.MALFORMED_TIMESTAMP, "Invalid timestamp format")
    request_ts = int(timestamp)

    current_ts = int(time.time())
    if abs(current_ts - request_ts) > tolerance:
        raise SignatureVerificationError(
            VerificationFailure.STALE_REQUEST, "Request timestamp is outside the replay window"
        )

    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise SignatureVerificationError(VerificationFailure.SIGNATURE_MISMATCH, "Invalid signature")
