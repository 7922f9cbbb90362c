"""Slack interaction decoding, correlation state, modal and conversation flow."""

from .forms import LEAVE_MODAL_CALLBACK_ID, build_leave_modal, parse_leave_submission
from .metadata import CorrelationState, create_state, decode_state, encode_state
from .orchestrator import InteractionPhase, LeaveInteractionOrchestrator, Resolution
from .payloads import (
    BlockAction,
    FormClosed,
    FormSubmitted,
    InteractionEvent,
    SlashCommand,
    decode_interaction,
    decode_slash_command,
)

__all__ = [
    "BlockAction",
    "CorrelationState",
    "FormClosed",
    "FormSubmitted",
    "InteractionEvent",
    "InteractionPhase",
    "LEAVE_MODAL_CALLBACK_ID",
    "LeaveInteractionOrchestrator",
    "Resolution",
    "SlashCommand",
    "build_leave_modal",
    "create_state",
    "decode_interaction",
    "decode_slash_command",
    "decode_state",
    "encode_state",
    "parse_leave_submission",
]
