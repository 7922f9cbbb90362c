"""Application entry point for the Slack leave engine."""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from flask import Flask, g, jsonify, request
from pydantic import ValidationError
from sqlalchemy import text
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars
from werkzeug.exceptions import HTTPException

from slack_leave_engine.config import AppSettings, get_settings
from slack_leave_engine.db import session_scope
from slack_leave_engine.errors import (
    AuthenticationError,
    ConflictError,
    DomainValidationError,
    OverlappingLeaveError,
    PayloadFailure,
    PayloadParseError,
    ProtocolError,
)
from slack_leave_engine.interactions.forms import LEAVE_MODAL_CALLBACK_ID
from slack_leave_engine.interactions.orchestrator import LeaveInteractionOrchestrator, submission_errors
from slack_leave_engine.interactions.payloads import (
    FormClosed,
    FormSubmitted,
    decode_interaction,
    decode_slash_command,
)
from slack_leave_engine.leaves.ingestion import LeaveIngestionService
from slack_leave_engine.leaves.requests import LeaveIngestionRequest
from slack_leave_engine.logging_config import configure_logging
from slack_leave_engine.security import (
    SIGNATURE_HEADER,
    SLACK_SIGNATURE_HEADER,
    SLACK_TIMESTAMP_HEADER,
    TIMESTAMP_HEADER,
    verify_request,
)
from slack_leave_engine.slack_client import SlackClient


_LOGGING_CONFIGURED = False


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def _signature_headers() -> tuple[str | None, str | None]:
    signature = request.headers.get(SIGNATURE_HEADER) or request.headers.get(SLACK_SIGNATURE_HEADER)
    timestamp = request.headers.get(TIMESTAMP_HEADER) or request.headers.get(SLACK_TIMESTAMP_HEADER)
    return signature, timestamp


def _verify(settings: AppSettings) -> bytes:
    """Authenticate the current request and return its raw body.

    Runs before any decoding; a failure raises :class:`SignatureVerificationError`.
    """

    raw_body = request.get_data(cache=True)
    signature, timestamp = _signature_headers()
    verify_request(
        signing_secret=settings.signing_secret,
        timestamp=timestamp,
        body=raw_body,
        signature=signature,
        tolerance=settings.signature_tolerance_seconds,
    )
    return raw_body


def build_orchestrator(
    settings: AppSettings, ingestion_service: LeaveIngestionService
) -> LeaveInteractionOrchestrator:
    return LeaveInteractionOrchestrator(
        slack_client=SlackClient(token=settings.bot_token),
        ingestion_service=ingestion_service,
    )


def _error_response(status: int, error: str, **details):
    response = jsonify({"error": error, **details})
    response.status_code = status
    return response


def _register_error_handlers(flask_app: Flask) -> None:
    """Map the engine's error families onto JSON responses."""

    @flask_app.errorhandler(AuthenticationError)
    def handle_authentication_error(error: AuthenticationError):  # type: ignore[override]
        reason = getattr(error, "reason", None)
        structlog.get_logger().warning(
            "request_signature_rejected",
            reason=reason.value if reason is not None else None,
            path=request.path,
        )
        return _error_response(401, "invalid_signature", reason=reason.value if reason is not None else None)

    @flask_app.errorhandler(ProtocolError)
    def handle_protocol_error(error: ProtocolError):  # type: ignore[override]
        reason = getattr(error, "reason", None)
        structlog.get_logger().warning(
            "request_payload_rejected",
            error=str(error),
            error_type=type(error).__name__,
            path=request.path,
        )
        return _error_response(
            400,
            "invalid_payload",
            reason=reason.value if reason is not None else "invalid_state",
            message=str(error),
        )

    @flask_app.errorhandler(DomainValidationError)
    def handle_domain_error(error: DomainValidationError):  # type: ignore[override]
        return _error_response(400, "invalid_leave", message=str(error))

    @flask_app.errorhandler(ValidationError)
    def handle_request_validation_error(error: ValidationError):  # type: ignore[override]
        details = [
            {"loc": [str(part) for part in item["loc"]], "msg": item["msg"]}
            for item in error.errors()
        ]
        return _error_response(400, "invalid_request", details=details)

    @flask_app.errorhandler(ConflictError)
    def handle_conflict_error(error: ConflictError):  # type: ignore[override]
        details = {"message": str(error)}
        if isinstance(error, OverlappingLeaveError):
            details["conflictingLeaveId"] = error.conflicting_leave_id
        return _error_response(409, "leave_conflict", **details)

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        if isinstance(error, HTTPException):
            return error

        trace_id = g.get("trace_id") or str(uuid4())
        structlog.get_logger().exception(
            "unhandled_application_error", trace_id=trace_id, error=str(error)
        )
        return _error_response(500, "internal_server_error", trace_id=trace_id)


def create_app(
    *,
    orchestrator: LeaveInteractionOrchestrator | None = None,
    ingestion_service: LeaveIngestionService | None = None,
) -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        configure_logging()
        _LOGGING_CONFIGURED = True

    settings = get_settings()
    ingestion_service = ingestion_service or LeaveIngestionService()
    orchestrator = orchestrator or build_orchestrator(settings, ingestion_service)

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.logger.setLevel("INFO")

    _register_error_handlers(flask_app)

    @flask_app.before_request
    def bind_trace_id():
        g.trace_id = str(uuid4())
        bind_contextvars(trace_id=g.trace_id)

    @flask_app.teardown_request
    def unbind_trace_id(_exc):
        unbind_contextvars("trace_id")

    @flask_app.route("/slack/commands", methods=["POST"])
    def slack_commands():
        raw_body = _verify(settings)
        command = decode_slash_command(raw_body)

        if command.command and command.command != settings.slack_command:
            structlog.get_logger().warning("unexpected_slash_command", command=command.command)
            return jsonify({"response_type": "ephemeral", "text": f"Unsupported command `{command.command}`."})

        orchestrator.handle_slash_command(command, trace_id=g.trace_id)
        return "", 200

    @flask_app.route("/slack/interactions", methods=["POST"])
    def slack_interactions():
        raw_body = _verify(settings)
        event = decode_interaction(raw_body)

        if isinstance(event, (FormSubmitted, FormClosed)) and event.view.callback_id != LEAVE_MODAL_CALLBACK_ID:
            structlog.get_logger().info("foreign_view_ignored", callback_id=event.view.callback_id)
            return "", 200

        try:
            orchestrator.dispatch(event, trace_id=g.trace_id)
        except PayloadParseError as exc:
            errors = submission_errors(exc) if isinstance(event, FormSubmitted) else None
            if errors is None:
                raise
            return jsonify(errors), 200
        return "", 200

    @flask_app.route("/api/leaves/ingest", methods=["POST"])
    def ingest_leave():
        _verify(settings)
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise PayloadParseError(PayloadFailure.MALFORMED_PAYLOAD, "Request body must be a JSON object")

        ingestion_request = LeaveIngestionRequest.model_validate(payload)
        summary = ingestion_service.ingest(ingestion_request.to_command())
        return jsonify(summary.to_dict()), 201

    @flask_app.route("/healthz", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True}
        health["version"] = flask_app.config.get("APP_VERSION", "unknown")

        try:
            get_settings()
            health["config"] = "valid"
        except RuntimeError as exc:
            health["config"] = "invalid"
            health["config_error"] = str(exc)
            health["ok"] = False

        try:
            with session_scope() as session:
                session.execute(text("SELECT 1"))
            health["db"] = "up"
        except Exception as exc:
            health["db"] = "down"
            health["db_error"] = str(exc)
            health["ok"] = False

        status = 200 if health["ok"] else 503
        return jsonify(health), status

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000, debug=True)
