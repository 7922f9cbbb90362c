"""Block Kit message builders for the leave conversation thread."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Sequence, Tuple

from slack_leave_engine.leaves.ingestion import LeaveSummary
from slack_leave_engine.leaves.types import LeaveDurationType

_DURATION_LABELS = {
    LeaveDurationType.FULL_DAY: "Full Day",
    LeaveDurationType.FIRST_HALF: "First Half",
    LeaveDurationType.SECOND_HALF: "Second Half",
}


def user_tag(user_id: str | None) -> str:
    return f"<@{user_id}>" if user_id else "someone"


def _header(text: str) -> Dict[str, Any]:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _fields(pairs: Sequence[Tuple[str, str]]) -> Dict[str, Any]:
    return {
        "type": "section",
        "fields": [{"type": "mrkdwn", "text": f"*{label}:*\n{value}"} for label, value in pairs],
    }


def format_date(day: date) -> str:
    return day.strftime("%b %d, %Y")


def format_dates(start_date: date, end_date: date) -> str:
    if start_date == end_date:
        return format_date(start_date)
    return f"{format_date(start_date)} - {format_date(end_date)}"


def format_duration(duration: LeaveDurationType | str) -> str:
    try:
        return _DURATION_LABELS[LeaveDurationType(duration)]
    except ValueError:
        return str(duration)


def build_anchor_message(user_id: str | None) -> Dict[str, Any]:
    """Thread anchor posted as soon as the slash command arrives."""

    tag = user_tag(user_id)
    blocks: List[Dict[str, Any]] = [
        _header(":memo: Leave Request Initiated"),
        _section(
            f"*User:* {tag}\n*Status:* Opening modal...\n\n"
            "Please fill out the leave details in the modal."
        ),
    ]
    return {"text": f":memo: Leave request initiated for {tag}", "blocks": blocks}


def build_leave_created_message(user_id: str, leave: LeaveSummary) -> Dict[str, Any]:
    tag = user_tag(user_id)
    blocks = [
        _header(":white_check_mark: Leave Created Successfully"),
        _fields(
            [
                ("User", tag),
                ("Leave ID", leave.id),
                ("Type", leave.type.value),
                ("Dates", format_dates(leave.start_date, leave.end_date)),
                ("Duration", format_duration(leave.duration_type)),
                ("Status", leave.status.value),
            ]
        ),
    ]
    return {"text": f":white_check_mark: Leave created successfully for {tag}", "blocks": blocks}


def build_leave_failed_message(user_id: str | None, error_message: str | None) -> Dict[str, Any]:
    tag = user_tag(user_id)
    blocks = [
        _header(":x: Leave Request Failed"),
        _section(f"*User:* {tag}"),
        _section(f"*Error:* {error_message or 'Unknown error'}"),
        {"type": "divider"},
        _section("Please try again or contact HR for assistance."),
    ]
    return {"text": f":x: Leave request failed for {tag}", "blocks": blocks}


def build_leave_cancelled_message(user_id: str | None) -> Dict[str, Any]:
    tag = user_tag(user_id)
    blocks = [
        _header(":x: Leave Request Cancelled"),
        _section(f"*User:* {tag}"),
        _section("*Status:* The leave request modal was cancelled without submitting."),
    ]
    return {"text": f":x: Leave request cancelled for {tag}", "blocks": blocks}
