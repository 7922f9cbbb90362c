"""Correlation state carried through a modal's ``private_metadata`` field.

Slack stores the string verbatim and echoes it back on ``view_submission`` and
``view_closed``. Decoding is strict: unknown keys, missing keys or wrong types
are rejected so a drifted or tampered payload never resumes a conversation.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from slack_leave_engine.errors import InvalidStateError


class CorrelationState(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, strict=True)

    user_id: str = Field(..., alias="userId")
    channel_id: str = Field(..., alias="channelId")
    channel_name: str = Field(..., alias="channelName")
    thread_ts: str | None = Field(..., alias="threadTs")

    @classmethod
    def of(cls, user_id: str, channel_id: str, channel_name: str, thread_ts: str | None) -> "CorrelationState":
        return cls.model_validate(
            {"userId": user_id, "channelId": channel_id, "channelName": channel_name, "threadTs": thread_ts}
        )


def encode_state(state: CorrelationState) -> str:
    """Return the canonical JSON form (declaration order, no whitespace)."""

    return json.dumps(state.model_dump(by_alias=True), separators=(",", ":"))


def create_state(user_id: str, channel_id: str, channel_name: str, thread_ts: str | None) -> str:
    return encode_state(CorrelationState.of(user_id, channel_id, channel_name, thread_ts))


def decode_state(raw: str | None) -> CorrelationState:
    if raw is None or not raw.strip():
        raise InvalidStateError("Correlation state cannot be null or empty")

    try:
        return CorrelationState.model_validate_json(raw)
    except ValidationError as exc:
        raise InvalidStateError(f"Failed to decode correlation state: {exc.error_count()} error(s)") from exc


def extract_user_id(raw: str | None) -> str:
    return decode_state(raw).user_id


def extract_channel_id(raw: str | None) -> str:
    return decode_state(raw).channel_id


def extract_channel_name(raw: str | None) -> str:
    return decode_state(raw).channel_name


def extract_thread_ts(raw: str | None) -> str | None:
    return decode_state(raw).thread_ts
