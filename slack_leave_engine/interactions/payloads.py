"""Decoders turning raw Slack webhook bodies into typed interaction events."""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Literal, Mapping, Union
from urllib.parse import parse_qsl

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from slack_leave_engine.errors import PayloadFailure, PayloadParseError

VIEW_SUBMISSION = "view_submission"
VIEW_CLOSED = "view_closed"
BLOCK_ACTIONS = "block_actions"

_FIELD_NAME = re.compile(r"^[A-Za-z0-9_.\-\[\]]+$")

SLASH_COMMAND_FIELDS = (
    "command",
    "text",
    "trigger_id",
    "user_id",
    "user_name",
    "channel_id",
    "channel_name",
    "team_id",
    "team_domain",
    "response_url",
    "api_app_id",
)


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class SlackTeam(_Envelope):
    id: str | None = None
    domain: str | None = None


class SlackUser(_Envelope):
    id: str
    username: str | None = None
    name: str | None = None
    team_id: str | None = None


class SelectedOption(_Envelope):
    value: str
    text: Dict[str, Any] | None = None


class FieldValue(_Envelope):
    """A single input element's state: radio selection, date or free text."""

    type: str | None = None
    value: str | None = None
    selected_date: str | None = None
    selected_option: SelectedOption | None = None


class ViewState(_Envelope):
    values: Dict[str, Dict[str, FieldValue]] = Field(default_factory=dict)


class SlackView(_Envelope):
    id: str
    team_id: str | None = None
    type: str | None = None
    callback_id: str | None = None
    private_metadata: str | None = None
    hash: str | None = None
    state: ViewState = Field(default_factory=ViewState)


class SlackAction(_Envelope):
    action_id: str
    block_id: str | None = None
    type: str | None = None
    value: str | None = None
    action_ts: str | None = None


class SlashCommand(_Envelope):
    command: str | None = None
    text: str | None = None
    trigger_id: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    channel_id: str | None = None
    channel_name: str | None = None
    team_id: str | None = None
    team_domain: str | None = None
    response_url: str | None = None
    api_app_id: str | None = None


class FormSubmitted(_Envelope):
    type: Literal["view_submission"]
    team: SlackTeam | None = None
    user: SlackUser
    api_app_id: str | None = None
    trigger_id: str | None = None
    view: SlackView


class FormClosed(_Envelope):
    type: Literal["view_closed"]
    team: SlackTeam | None = None
    user: SlackUser
    api_app_id: str | None = None
    view: SlackView
    is_cleared: bool = False


class BlockAction(_Envelope):
    type: Literal["block_actions"]
    team: SlackTeam | None = None
    user: SlackUser
    api_app_id: str | None = None
    trigger_id: str | None = None
    response_url: str | None = None
    view: SlackView | None = None
    actions: List[SlackAction] = Field(default_factory=list)


InteractionEvent = Union[SlashCommand, FormSubmitted, FormClosed, BlockAction]


def _malformed(message: str) -> PayloadParseError:
    return PayloadParseError(PayloadFailure.MALFORMED_PAYLOAD, message)


def parse_form_body(raw_body: str | bytes) -> Dict[str, str]:
    """Decode an ``application/x-www-form-urlencoded`` body into a flat mapping."""

    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            raise _malformed("Request body is not valid UTF-8") from None

    if not raw_body or not raw_body.strip():
        raise _malformed("Request body is empty")

    try:
        pairs = parse_qsl(raw_body, keep_blank_values=True, strict_parsing=True, errors="strict")
    except (ValueError, UnicodeDecodeError):
        raise _malformed("Request body is not form encoded") from None

    fields: Dict[str, str] = {}
    for key, value in pairs:
        if not _FIELD_NAME.match(key):
            raise _malformed("Request body is not form encoded")
        if key in fields:
            raise _malformed(f"Duplicate form field '{key}'")
        fields[key] = value
    return fields


def decode_slash_command(raw_body: str | bytes) -> SlashCommand:
    """Decode a slash command body; absent fields are left as ``None``."""

    fields = parse_form_body(raw_body)
    return SlashCommand(**{name: fields.get(name) for name in SLASH_COMMAND_FIELDS})


def extract_payload_json(raw_body: str | bytes) -> Dict[str, Any]:
    """Return the JSON document wrapped in the ``payload`` form field."""

    fields = parse_form_body(raw_body)
    payload = fields.get("payload")
    if not payload:
        raise _malformed("Missing 'payload' parameter in request body")

    try:
        document = json.loads(payload)
    except json.JSONDecodeError:
        raise _malformed("Interaction payload is not valid JSON") from None

    if not isinstance(document, dict):
        raise _malformed("Interaction payload must be a JSON object")
    return document


def extract_type(document: Mapping[str, Any]) -> str:
    interaction_type = document.get("type")
    if not isinstance(interaction_type, str) or not interaction_type.strip():
        raise PayloadParseError(PayloadFailure.MISSING_TYPE_FIELD, "Missing 'type' field in payload")
    return interaction_type


def _validator(model: type[_Envelope]) -> Callable[[Mapping[str, Any]], _Envelope]:
    def decode(document: Mapping[str, Any]) -> _Envelope:
        try:
            return model.model_validate(document)
        except ValidationError as exc:
            raise _malformed(f"Invalid {model.__name__} payload: {exc.error_count()} error(s)") from exc

    return decode


_DECODERS: Dict[str, Callable[[Mapping[str, Any]], _Envelope]] = {
    VIEW_SUBMISSION: _validator(FormSubmitted),
    VIEW_CLOSED: _validator(FormClosed),
    BLOCK_ACTIONS: _validator(BlockAction),
}


def decode_interaction(raw_body: str | bytes) -> InteractionEvent:
    """Decode an interactive callback, routing on its ``type`` discriminator."""

    document = extract_payload_json(raw_body)
    interaction_type = extract_type(document)
    decoder = _DECODERS.get(interaction_type)
    if decoder is None:
        raise PayloadParseError(
            PayloadFailure.UNSUPPORTED_TYPE, f"Unsupported interaction type '{interaction_type}'"
        )
    return decoder(document)  # type: ignore[return-value]
