"""Conversation flow tying slash commands, the leave modal and ingestion together.

Handlers run inside the webhook request and return quickly. Opening the modal,
ingesting the submitted leave and posting outcome messages are handed to
:func:`slack_leave_engine.background.run_async`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars

from slack_leave_engine.background import run_async
from slack_leave_engine.errors import (
    LeaveEngineError,
    OverlappingLeaveError,
    PayloadFailure,
    PayloadParseError,
    TransientDeliveryError,
)
from slack_leave_engine.leaves.ingestion import LeaveIngestionService
from slack_leave_engine.leaves.requests import LeaveIngestionCommand
from slack_leave_engine.slack_client import SlackClient

from .forms import build_leave_modal, parse_leave_submission
from .messages import (
    build_anchor_message,
    build_leave_cancelled_message,
    build_leave_created_message,
    build_leave_failed_message,
    format_dates,
)
from .metadata import CorrelationState, create_state, decode_state
from .payloads import BlockAction, FormClosed, FormSubmitted, InteractionEvent, SlashCommand

MODAL_UNAVAILABLE_TEXT = "Sorry, the leave form could not be opened. Please try again."
UNEXPECTED_FAILURE_TEXT = "Something went wrong while saving your leave. Please try again later."


class InteractionPhase(str, Enum):
    AWAITING_COMMAND = "awaiting_command"
    ANCHOR_POSTED = "anchor_posted"
    MODAL_OPENED = "modal_opened"
    SUBMITTED = "submitted"
    CLOSED = "closed"


class Resolution(str, Enum):
    """How an interaction ended, as seen by the user."""

    ACKNOWLEDGED = "acknowledged"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


def describe_failure(exc: Exception) -> str:
    """Render an ingestion failure for the requesting user."""

    if isinstance(exc, OverlappingLeaveError):
        return (
            "You already have a leave on "
            f"{format_dates(exc.start_date, exc.end_date)} (ID: {exc.conflicting_leave_id}) "
            "that overlaps with the requested dates."
        )
    if isinstance(exc, LeaveEngineError):
        return str(exc)
    return UNEXPECTED_FAILURE_TEXT


class LeaveInteractionOrchestrator:
    """Drive a leave request from ``/leave`` through the modal to the thread replies."""

    def __init__(self, *, slack_client: SlackClient, ingestion_service: LeaveIngestionService) -> None:
        self._slack = slack_client
        self._ingestion = ingestion_service

    def dispatch(self, event: InteractionEvent, *, trace_id: str | None = None) -> Any:
        if isinstance(event, SlashCommand):
            return self.handle_slash_command(event, trace_id=trace_id)
        if isinstance(event, FormSubmitted):
            return self.handle_form_submitted(event, trace_id=trace_id)
        if isinstance(event, FormClosed):
            return self.handle_form_closed(event, trace_id=trace_id)
        if isinstance(event, BlockAction):
            return self.handle_block_action(event)
        raise TypeError(f"Unsupported interaction event {type(event).__name__}")

    # Slash command

    def handle_slash_command(self, command: SlashCommand, *, trace_id: str | None = None) -> str | None:
        """Post the thread anchor and schedule the modal; return the anchor ts."""

        trace_id = trace_id or str(uuid4())
        log = structlog.get_logger().bind(user_id=command.user_id, channel_id=command.channel_id)

        with bound_contextvars(trace_id=trace_id):
            log.info(
                "slash_command_received",
                command=command.command,
                phase=InteractionPhase.AWAITING_COMMAND.value,
            )
            if not command.user_id or not command.channel_id:
                raise PayloadParseError(
                    PayloadFailure.INVALID_FIELD, "Slash command is missing user_id or channel_id"
                )

            anchor = build_anchor_message(command.user_id)
            thread_ts: str | None
            try:
                thread_ts = self._slack.post_message(
                    channel=command.channel_id,
                    text=anchor["text"],
                    blocks=anchor["blocks"],
                )
            except TransientDeliveryError as exc:
                log.warning("thread_anchor_failed", error=exc.error)
                thread_ts = None
            else:
                log.info(
                    "thread_anchor_posted", thread_ts=thread_ts, phase=InteractionPhase.ANCHOR_POSTED.value
                )

            state = CorrelationState.of(
                command.user_id, command.channel_id, command.channel_name or "", thread_ts
            )
            run_async(self.open_leave_modal, command, state, trace_id=trace_id)
            return thread_ts

    def open_leave_modal(self, command: SlashCommand, state: CorrelationState) -> Resolution:
        log = structlog.get_logger().bind(user_id=state.user_id, thread_ts=state.thread_ts)
        view = build_leave_modal(
            create_state(state.user_id, state.channel_id, state.channel_name, state.thread_ts)
        )

        try:
            view_id = self._slack.open_view(trigger_id=command.trigger_id, view=view)
        except TransientDeliveryError as exc:
            log.error("leave_modal_open_failed", error=exc.error)
            self._notify_ephemeral(command.response_url, MODAL_UNAVAILABLE_TEXT)
            self.notify(state, build_leave_failed_message(state.user_id, MODAL_UNAVAILABLE_TEXT))
            return Resolution.FAILURE

        log.info("leave_modal_opened", view_id=view_id, phase=InteractionPhase.MODAL_OPENED.value)
        return Resolution.ACKNOWLEDGED

    # Modal submission

    def handle_form_submitted(
        self, event: FormSubmitted, *, trace_id: str | None = None
    ) -> LeaveIngestionCommand:
        """Decode the submission and schedule ingestion.

        Undecodable correlation state or field values are raised to the caller
        so the webhook can reject the submission.
        """

        trace_id = trace_id or str(uuid4())
        log = structlog.get_logger().bind(view_id=event.view.id)

        with bound_contextvars(trace_id=trace_id):
            state = decode_state(event.view.private_metadata)
            if state.user_id != event.user.id:
                log.warning("correlation_user_mismatch", state_user_id=state.user_id, user_id=event.user.id)

            command = parse_leave_submission(event, state)
            log.info(
                "leave_submission_received",
                phase=InteractionPhase.SUBMITTED.value,
                user_id=command.user_id,
                start_date=command.date_range.start_date.isoformat(),
                end_date=command.date_range.end_date.isoformat(),
            )
            run_async(self.process_leave_request, command, state, trace_id=trace_id)
            return command

    def process_leave_request(self, command: LeaveIngestionCommand, state: CorrelationState) -> Resolution:
        log = structlog.get_logger().bind(user_id=command.user_id, source_id=command.source_id)

        try:
            leave = self._ingestion.ingest(command)
        except LeaveEngineError as exc:
            log.warning("leave_request_rejected", error=str(exc), error_type=type(exc).__name__)
            self.notify(state, build_leave_failed_message(state.user_id, describe_failure(exc)))
            return Resolution.FAILURE
        except Exception as exc:
            log.exception("leave_request_failed", error=str(exc))
            self.notify(state, build_leave_failed_message(state.user_id, describe_failure(exc)))
            return Resolution.FAILURE

        self.notify(state, build_leave_created_message(state.user_id, leave))
        return Resolution.SUCCESS

    # Modal closed

    def handle_form_closed(self, event: FormClosed, *, trace_id: str | None = None) -> CorrelationState:
        trace_id = trace_id or str(uuid4())

        with bound_contextvars(trace_id=trace_id):
            state = decode_state(event.view.private_metadata)
            structlog.get_logger().info(
                "leave_modal_closed",
                user_id=state.user_id,
                view_id=event.view.id,
                phase=InteractionPhase.CLOSED.value,
            )
            run_async(self.post_cancellation, state, trace_id=trace_id)
            return state

    def post_cancellation(self, state: CorrelationState) -> Resolution:
        self.notify(state, build_leave_cancelled_message(state.user_id))
        return Resolution.CANCELLED

    def handle_block_action(self, event: BlockAction) -> Resolution:
        structlog.get_logger().info(
            "block_action_acknowledged",
            user_id=event.user.id,
            actions=[action.action_id for action in event.actions],
        )
        return Resolution.ACKNOWLEDGED

    # Delivery

    def notify(self, state: CorrelationState, message: Mapping[str, Any]) -> bool:
        """Reply in the conversation thread; delivery failures are logged and dropped.

        Without a thread marker the reply goes to the channel itself.
        """

        try:
            self._slack.post_message(
                channel=state.channel_id,
                text=message["text"],
                blocks=message["blocks"],
                thread_ts=state.thread_ts,
            )
        except TransientDeliveryError as exc:
            structlog.get_logger().warning(
                "thread_reply_failed",
                channel_id=state.channel_id,
                thread_ts=state.thread_ts,
                error=exc.error,
            )
            return False
        return True

    def _notify_ephemeral(self, response_url: str | None, text: str) -> bool:
        try:
            self._slack.post_ephemeral(response_url=response_url, text=text)
        except TransientDeliveryError as exc:
            structlog.get_logger().warning("ephemeral_notice_failed", error=exc.error)
            return False
        return True


def submission_errors(exc: PayloadParseError) -> Dict[str, Any] | None:
    """Modal ``response_action`` body for a field-level error, if *exc* is one."""

    if exc.reason is not PayloadFailure.INVALID_FIELD or not exc.block_id:
        return None
    return {"response_action": "errors", "errors": {exc.block_id: str(exc)}}
