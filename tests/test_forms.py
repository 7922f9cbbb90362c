"""Tests for the leave modal and submission mapping."""

from datetime import date
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_leave_engine.errors import InvalidStateError, PayloadFailure, PayloadParseError  # noqa: E402
from slack_leave_engine.interactions import forms  # noqa: E402
from slack_leave_engine.interactions.metadata import create_state  # noqa: E402
from slack_leave_engine.interactions.payloads import FormSubmitted  # noqa: E402
from slack_leave_engine.leaves.types import LeaveDurationType, LeaveStatus, LeaveType, SourceType  # noqa: E402

STATE = create_state("U1", "C1", "general", "1700000000.000100")


def _values(
    leave_type="ANNUAL_LEAVE",
    duration="FULL_DAY",
    start="2024-01-15",
    end=None,
    reason=None,
):
    values = {
        forms.LEAVE_TYPE_BLOCK: {
            forms.LEAVE_TYPE_ACTION: {"type": "radio_buttons", "selected_option": {"value": leave_type}}
        },
        forms.DURATION_BLOCK: {
            forms.DURATION_ACTION: {"type": "radio_buttons", "selected_option": {"value": duration}}
        },
        forms.START_DATE_BLOCK: {forms.START_DATE_ACTION: {"type": "datepicker", "selected_date": start}},
        forms.END_DATE_BLOCK: {forms.END_DATE_ACTION: {"type": "datepicker", "selected_date": end}},
        forms.REASON_BLOCK: {forms.REASON_ACTION: {"type": "plain_text_input", "value": reason}},
    }
    return values


def _submission(values=None, private_metadata=STATE) -> FormSubmitted:
    return FormSubmitted.model_validate(
        {
            "type": "view_submission",
            "user": {"id": "U1"},
            "view": {
                "id": "V-submitted",
                "callback_id": forms.LEAVE_MODAL_CALLBACK_ID,
                "private_metadata": private_metadata,
                "state": {"values": values if values is not None else _values()},
            },
        }
    )


def test_modal_carries_metadata_and_requests_close_notification():
    view = forms.build_leave_modal(STATE)

    assert view["type"] == "modal"
    assert view["callback_id"] == "leave_application_submit"
    assert view["private_metadata"] == STATE
    assert view["notify_on_close"] is True
    block_ids = [block["block_id"] for block in view["blocks"]]
    assert block_ids == [
        forms.LEAVE_TYPE_BLOCK,
        forms.DURATION_BLOCK,
        forms.START_DATE_BLOCK,
        forms.END_DATE_BLOCK,
        forms.REASON_BLOCK,
    ]


def test_modal_defaults_and_optional_fields():
    blocks = {block["block_id"]: block for block in forms.build_leave_modal(STATE)["blocks"]}

    assert blocks[forms.LEAVE_TYPE_BLOCK]["element"]["initial_option"]["value"] == "ANNUAL_LEAVE"
    assert blocks[forms.DURATION_BLOCK]["element"]["initial_option"]["value"] == "FULL_DAY"
    assert blocks[forms.START_DATE_BLOCK]["optional"] is False
    assert blocks[forms.END_DATE_BLOCK]["optional"] is True
    assert blocks[forms.REASON_BLOCK]["element"]["multiline"] is True


def test_modal_title_and_labels_fit_slack_limits():
    view = forms.build_leave_modal(STATE)

    assert view["title"]["text"] == "Apply for Leave"
    assert len(view["title"]["text"]) <= 24
    for block in view["blocks"]:
        assert len(block["label"]["text"]) <= 75


def test_submission_maps_to_ingestion_command():
    command = forms.parse_leave_submission(
        _submission(_values(start="2024-01-15", end="2024-01-17", reason="  family trip  "))
    )

    assert command.source_type is SourceType.SLACK
    assert command.source_id == "V-submitted"
    assert command.user_id == "U1"
    assert command.date_range.start_date == date(2024, 1, 15)
    assert command.date_range.end_date == date(2024, 1, 17)
    assert command.type is LeaveType.ANNUAL_LEAVE
    assert command.status is LeaveStatus.APPROVED
    assert command.duration_type is LeaveDurationType.FULL_DAY
    assert command.reason == "family trip"


def test_missing_end_date_defaults_to_start_date():
    command = forms.parse_leave_submission(
        _submission(_values(duration="SECOND_HALF", start="2024-01-15", end=None))
    )

    assert command.date_range.start_date == date(2024, 1, 15)
    assert command.date_range.end_date == date(2024, 1, 15)
    assert command.duration_type is LeaveDurationType.SECOND_HALF
    assert command.reason is None


def test_missing_start_date_is_an_invalid_field():
    with pytest.raises(PayloadParseError) as err:
        forms.parse_leave_submission(_submission(_values(start=None)))

    assert err.value.reason is PayloadFailure.INVALID_FIELD
    assert err.value.block_id == forms.START_DATE_BLOCK


def test_unknown_leave_type_is_an_invalid_field():
    with pytest.raises(PayloadParseError) as err:
        forms.parse_leave_submission(_submission(_values(leave_type="SICK")))

    assert err.value.block_id == forms.LEAVE_TYPE_BLOCK


def test_missing_radio_selection_is_an_invalid_field():
    values = _values()
    del values[forms.DURATION_BLOCK]

    with pytest.raises(PayloadParseError) as err:
        forms.parse_leave_submission(_submission(values))

    assert err.value.reason is PayloadFailure.INVALID_FIELD
    assert err.value.block_id == forms.DURATION_BLOCK


def test_unparseable_date_is_an_invalid_field():
    with pytest.raises(PayloadParseError) as err:
        forms.parse_leave_submission(_submission(_values(end="15/01/2024")))

    assert err.value.block_id == forms.END_DATE_BLOCK


def test_corrupt_metadata_is_rejected_before_fields_are_read():
    with pytest.raises(InvalidStateError):
        forms.parse_leave_submission(_submission(_values(start=None), private_metadata="{}"))
