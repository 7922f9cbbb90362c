"""Tests for the Flask application factory."""

import json
from pathlib import Path
import sys
from types import SimpleNamespace
from urllib.parse import urlencode

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402
from slack_leave_engine import Base, config, security  # noqa: E402
from slack_leave_engine.db import get_engine, get_session_factory  # noqa: E402
from slack_leave_engine.errors import InvalidStateError, PayloadFailure, PayloadParseError  # noqa: E402
from slack_leave_engine.interactions import forms  # noqa: E402
from slack_leave_engine.interactions.metadata import create_state  # noqa: E402
from slack_leave_engine.interactions.payloads import FormClosed, FormSubmitted, SlashCommand  # noqa: E402
from slack_leave_engine.leaves.ingestion import LeaveIngestionService  # noqa: E402

SECRET = "secret"
TIMESTAMP = "1700000000"


class RecordingSync:
    def sync(self, leave, originating_source):
        return None


class RecordingOrchestrator:
    def __init__(self, error=None):
        self.events = []
        self.error = error

    def handle_slash_command(self, command, *, trace_id=None):
        self.events.append(("command", command, trace_id))
        return "1700000000.000100"

    def dispatch(self, event, *, trace_id=None):
        self.events.append(("interaction", event, trace_id))
        if self.error:
            raise self.error


@pytest.fixture(autouse=True)
def seed_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "token")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", SECRET)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.delenv("SLACK_COMMAND", raising=False)
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    Base.metadata.create_all(get_engine())
    monkeypatch.setattr(security, "time", SimpleNamespace(time=lambda: int(TIMESTAMP)))
    yield
    Base.metadata.drop_all(get_engine())
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


def _signed_headers(body: str, timestamp: str = TIMESTAMP, *, native: bool = False) -> dict[str, str]:
    signature = security.compute_signature(SECRET, timestamp, body)
    if native:
        return {security.SLACK_SIGNATURE_HEADER: signature, security.SLACK_TIMESTAMP_HEADER: timestamp}
    return {security.SIGNATURE_HEADER: signature, security.TIMESTAMP_HEADER: timestamp}


def _client(orchestrator=None, ingestion_service=None):
    flask_app = app_module.create_app(
        orchestrator=orchestrator or RecordingOrchestrator(),
        ingestion_service=ingestion_service or LeaveIngestionService(outbound_sync=RecordingSync()),
    )
    return flask_app.test_client()


def _post_form(client, path, body, headers=None):
    return client.post(
        path,
        data=body,
        content_type="application/x-www-form-urlencoded",
        headers=headers if headers is not None else _signed_headers(body),
    )


def _command_body(**overrides) -> str:
    fields = {"command": "/leave", "user_id": "U1", "channel_id": "C1", "trigger_id": "trigger-1"}
    fields.update(overrides)
    return urlencode(fields)


def _view_body(interaction_type: str, callback_id=forms.LEAVE_MODAL_CALLBACK_ID) -> str:
    document = {
        "type": interaction_type,
        "user": {"id": "U1"},
        "view": {
            "id": "V1",
            "callback_id": callback_id,
            "private_metadata": create_state("U1", "C1", "general", "1.2"),
        },
    }
    return urlencode({"payload": json.dumps(document)})


def test_slash_command_is_verified_decoded_and_acknowledged():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)

    response = _post_form(client, "/slack/commands", _command_body())

    assert response.status_code == 200
    assert response.data == b""
    kind, command, trace_id = orchestrator.events[0]
    assert kind == "command"
    assert isinstance(command, SlashCommand)
    assert command.user_id == "U1"
    assert trace_id


def test_native_slack_headers_are_accepted():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)
    body = _command_body()

    response = _post_form(client, "/slack/commands", body, _signed_headers(body, native=True))

    assert response.status_code == 200
    assert len(orchestrator.events) == 1


def test_invalid_signature_returns_unauthorised_before_decoding(monkeypatch):
    decoded = []
    monkeypatch.setattr(app_module, "decode_slash_command", lambda body: decoded.append(body))
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)

    response = _post_form(
        client,
        "/slack/commands",
        _command_body(),
        {security.SIGNATURE_HEADER: "v0=deadbeef", security.TIMESTAMP_HEADER: TIMESTAMP},
    )

    assert response.status_code == 401
    assert response.get_json() == {"error": "invalid_signature", "reason": "signature_mismatch"}
    assert decoded == []
    assert orchestrator.events == []


def test_stale_timestamp_rejected():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)
    body = _command_body()

    response = _post_form(client, "/slack/commands", body, _signed_headers(body, timestamp="1699999000"))

    assert response.status_code == 401
    assert response.get_json()["reason"] == "stale_request"
    assert orchestrator.events == []


def test_missing_headers_rejected():
    response = _post_form(_client(), "/slack/interactions", _view_body("view_closed"), {})

    assert response.status_code == 401
    assert response.get_json()["reason"] == "missing_field"


def test_unexpected_command_gets_ephemeral_reply():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)

    response = _post_form(client, "/slack/commands", _command_body(command="/vacation"))

    assert response.status_code == 200
    assert response.get_json()["response_type"] == "ephemeral"
    assert orchestrator.events == []


def test_interaction_is_dispatched():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)

    response = _post_form(client, "/slack/interactions", _view_body("view_closed"))

    assert response.status_code == 200
    assert isinstance(orchestrator.events[0][1], FormClosed)


def test_foreign_views_are_ignored():
    orchestrator = RecordingOrchestrator()
    client = _client(orchestrator)

    response = _post_form(client, "/slack/interactions", _view_body("view_submission", callback_id="other"))

    assert response.status_code == 200
    assert orchestrator.events == []


def test_malformed_interaction_is_a_bad_request():
    response = _post_form(_client(), "/slack/interactions", urlencode({"payload": "not json"}))

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "invalid_payload"
    assert body["reason"] == "malformed_payload"


def test_unsupported_interaction_type_is_a_bad_request():
    body = urlencode({"payload": json.dumps({"type": "message_action", "user": {"id": "U1"}})})

    response = _post_form(_client(), "/slack/interactions", body)

    assert response.status_code == 400
    assert response.get_json()["reason"] == "unsupported_type"


def test_invalid_state_is_a_bad_request():
    client = _client(RecordingOrchestrator(error=InvalidStateError("Correlation state cannot be null or empty")))

    response = _post_form(client, "/slack/interactions", _view_body("view_submission"))

    assert response.status_code == 400
    assert response.get_json()["reason"] == "invalid_state"


def test_invalid_submission_field_returns_modal_errors():
    error = PayloadParseError(
        PayloadFailure.INVALID_FIELD, "Start date is required.", block_id=forms.START_DATE_BLOCK
    )
    orchestrator = RecordingOrchestrator(error=error)
    client = _client(orchestrator)

    response = _post_form(client, "/slack/interactions", _view_body("view_submission"))

    assert response.status_code == 200
    assert response.get_json() == {
        "response_action": "errors",
        "errors": {forms.START_DATE_BLOCK: "Start date is required."},
    }
    assert isinstance(orchestrator.events[0][1], FormSubmitted)


def _ingest(client, document):
    body = json.dumps(document)
    return client.post(
        "/api/leaves/ingest",
        data=body,
        content_type="application/json",
        headers=_signed_headers(body),
    )


def _leave_document(source_id="evt-1", start="2025-01-01", end="2025-01-05"):
    return {
        "sourceType": "CALENDAR",
        "sourceId": source_id,
        "userId": "U1",
        "dateRange": {"startDate": start, "endDate": end},
        "type": "ANNUAL_LEAVE",
    }


def test_ingest_api_creates_leave():
    response = _ingest(_client(), _leave_document())

    assert response.status_code == 201
    body = response.get_json()
    assert body["userId"] == "U1"
    assert body["sourceRefs"] == [{"sourceType": "CALENDAR", "sourceId": "evt-1"}]


def test_ingest_api_reports_overlap_as_conflict():
    client = _client()
    first = _ingest(client, _leave_document()).get_json()

    response = _ingest(client, _leave_document(source_id="evt-2", start="2025-01-03", end="2025-01-08"))

    assert response.status_code == 409
    body = response.get_json()
    assert body["error"] == "leave_conflict"
    assert body["conflictingLeaveId"] == first["id"]


def test_ingest_api_rejects_invalid_documents():
    client = _client()

    invalid = _ingest(client, {**_leave_document(), "type": "SICK"})
    half_day = _ingest(client, {**_leave_document(), "durationType": "FIRST_HALF"})

    assert invalid.status_code == 400
    assert invalid.get_json()["error"] == "invalid_request"
    assert half_day.status_code == 400
    assert half_day.get_json()["error"] == "invalid_leave"


def test_ingest_api_requires_signature():
    client = _client()

    response = client.post("/api/leaves/ingest", json=_leave_document())

    assert response.status_code == 401


def test_unhandled_errors_return_trace_id():
    client = _client(RecordingOrchestrator(error=RuntimeError("boom")))

    response = _post_form(client, "/slack/interactions", _view_body("view_closed"))

    assert response.status_code == 500
    body = response.get_json()
    assert body["error"] == "internal_server_error"
    assert body["trace_id"]


def test_healthz_reports_database_status():
    response = _client().get("/healthz")

    assert response.status_code == 200
    body = response.get_json()
    assert body["ok"] is True
    assert body["db"] == "up"
    assert body["config"] == "valid"


def test_unknown_route_is_not_found():
    assert _client().get("/missing").status_code == 404
