"""Leave application modal and the mapping of its submitted state."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from slack_leave_engine.errors import PayloadFailure, PayloadParseError
from slack_leave_engine.leaves.requests import LeaveIngestionCommand
from slack_leave_engine.leaves.types import (
    DateRange,
    LeaveDurationType,
    LeaveStatus,
    LeaveType,
    SourceType,
)

from .metadata import CorrelationState, decode_state
from .payloads import FieldValue, FormSubmitted

LEAVE_MODAL_CALLBACK_ID = "leave_application_submit"
MODAL_TITLE = "Apply for Leave"

LEAVE_TYPE_BLOCK = "leave_type_category_block"
LEAVE_TYPE_ACTION = "leave_type_category_action"
DURATION_BLOCK = "leave_duration_block"
DURATION_ACTION = "leave_duration_action"
START_DATE_BLOCK = "start_date_block"
START_DATE_ACTION = "start_date_action"
END_DATE_BLOCK = "end_date_block"
END_DATE_ACTION = "end_date_action"
REASON_BLOCK = "reason_block"
REASON_ACTION = "reason_action"

LEAVE_TYPE_OPTIONS: Sequence[Tuple[str, LeaveType]] = (
    ("Annual Leave", LeaveType.ANNUAL_LEAVE),
    ("Optional Holiday", LeaveType.OPTIONAL_HOLIDAY),
)
DURATION_OPTIONS: Sequence[Tuple[str, LeaveDurationType]] = (
    ("Full Day", LeaveDurationType.FULL_DAY),
    ("First Half", LeaveDurationType.FIRST_HALF),
    ("Second Half", LeaveDurationType.SECOND_HALF),
)


def _plain_text(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _option(label: str, value: str) -> Dict[str, Any]:
    return {"text": _plain_text(label), "value": value}


def _radio_block(
    block_id: str, action_id: str, label: str, options: Sequence[Tuple[str, Any]], initial: Any
) -> Dict[str, Any]:
    rendered = [_option(text, value.value) for text, value in options]
    initial_option = next(option for option in rendered if option["value"] == initial.value)
    return {
        "type": "input",
        "block_id": block_id,
        "label": _plain_text(label),
        "element": {
            "type": "radio_buttons",
            "action_id": action_id,
            "options": rendered,
            "initial_option": initial_option,
        },
        "optional": False,
    }


def _date_block(block_id: str, action_id: str, label: str, *, optional: bool) -> Dict[str, Any]:
    return {
        "type": "input",
        "block_id": block_id,
        "label": _plain_text(label),
        "element": {
            "type": "datepicker",
            "action_id": action_id,
            "placeholder": _plain_text("Select a date"),
        },
        "optional": optional,
    }


def build_leave_modal(private_metadata: str) -> Dict[str, Any]:
    """Build the Slack modal payload used to apply for leave."""

    blocks: List[Dict[str, Any]] = [
        _radio_block(LEAVE_TYPE_BLOCK, LEAVE_TYPE_ACTION, "Leave Type", LEAVE_TYPE_OPTIONS, LeaveType.ANNUAL_LEAVE),
        _radio_block(DURATION_BLOCK, DURATION_ACTION, "Duration", DURATION_OPTIONS, LeaveDurationType.FULL_DAY),
        _date_block(START_DATE_BLOCK, START_DATE_ACTION, "Start Date", optional=False),
        _date_block(END_DATE_BLOCK, END_DATE_ACTION, "End Date", optional=True),
        {
            "type": "input",
            "block_id": REASON_BLOCK,
            "label": _plain_text("Reason"),
            "element": {
                "type": "plain_text_input",
                "action_id": REASON_ACTION,
                "multiline": True,
                "placeholder": _plain_text("Optional: Provide a reason for your leave"),
            },
            "optional": True,
        },
    ]

    return {
        "type": "modal",
        "callback_id": LEAVE_MODAL_CALLBACK_ID,
        "private_metadata": private_metadata,
        "notify_on_close": True,
        "title": _plain_text(MODAL_TITLE),
        "submit": _plain_text("Submit"),
        "close": _plain_text("Cancel"),
        "blocks": blocks,
    }


def _invalid(message: str, block_id: str) -> PayloadParseError:
    return PayloadParseError(PayloadFailure.INVALID_FIELD, message, block_id=block_id)


def _field(values: Mapping[str, Mapping[str, FieldValue]], block_id: str, action_id: str) -> FieldValue | None:
    return values.get(block_id, {}).get(action_id)


def _selected_value(values, block_id: str, action_id: str) -> str:
    field = _field(values, block_id, action_id)
    if field is None:
        raise _invalid(f"Missing action: {action_id} in block: {block_id}", block_id)
    if field.selected_option is None:
        raise _invalid(f"Missing selected option for block: {block_id}, action: {action_id}", block_id)
    return field.selected_option.value


def _selected_date(values, block_id: str, action_id: str) -> date | None:
    field = _field(values, block_id, action_id)
    if field is None or not field.selected_date:
        return None
    try:
        return date.fromisoformat(field.selected_date)
    except ValueError:
        raise _invalid("Please pick a valid date.", block_id) from None


def _text_value(values, block_id: str, action_id: str) -> str | None:
    field = _field(values, block_id, action_id)
    if field is None or field.value is None:
        return None
    return field.value.strip() or None


def parse_leave_submission(event: FormSubmitted, state: CorrelationState | None = None) -> LeaveIngestionCommand:
    """Map a submitted leave modal to an ingestion command.

    The user comes from the correlation state, the source id is the view id,
    and a missing end date makes the leave a single day.
    """

    if state is None:
        state = decode_state(event.view.private_metadata)
    values = event.view.state.values

    leave_type_value = _selected_value(values, LEAVE_TYPE_BLOCK, LEAVE_TYPE_ACTION)
    try:
        leave_type = LeaveType(leave_type_value)
    except ValueError:
        raise _invalid(f"Unknown leave type '{leave_type_value}'", LEAVE_TYPE_BLOCK) from None

    duration_value = _selected_value(values, DURATION_BLOCK, DURATION_ACTION)
    try:
        duration = LeaveDurationType(duration_value)
    except ValueError:
        raise _invalid(f"Unknown duration '{duration_value}'", DURATION_BLOCK) from None

    start_date = _selected_date(values, START_DATE_BLOCK, START_DATE_ACTION)
    if start_date is None:
        raise _invalid("Start date is required.", START_DATE_BLOCK)
    end_date = _selected_date(values, END_DATE_BLOCK, END_DATE_ACTION) or start_date

    return LeaveIngestionCommand(
        source_type=SourceType.SLACK,
        source_id=event.view.id,
        user_id=state.user_id,
        date_range=DateRange(start_date, end_date),
        type=leave_type,
        status=LeaveStatus.APPROVED,
        duration_type=duration,
        reason=_text_value(values, REASON_BLOCK, REASON_ACTION),
    )
