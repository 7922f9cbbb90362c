"""Tests for database schema creation."""

from datetime import date
from pathlib import Path
import sys

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_leave_engine import Base, config, db  # noqa: E402
from slack_leave_engine.db import get_engine, get_session_factory, session_scope  # noqa: E402
from slack_leave_engine.leaves.types import LeaveStatus, LeaveType, SourceType  # noqa: E402
from slack_leave_engine.models import Leave, LeaveSourceRef  # noqa: E402


@pytest.fixture(autouse=True)
def override_database(monkeypatch, tmp_path):
    test_db = tmp_path / "test.db"
    monkeypatch.setenv("SLACK_BOT_TOKEN", "test-token")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{test_db}")
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    yield
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


def _leave(user_id="U1", source_id="V1") -> Leave:
    leave = Leave(
        user_id=user_id,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 5),
        type=LeaveType.ANNUAL_LEAVE,
        status=LeaveStatus.APPROVED,
        source_refs=[],
    )
    leave.add_source_ref(SourceType.SLACK, source_id)
    return leave


def test_create_all_creates_expected_tables():
    engine = get_engine()
    Base.metadata.create_all(engine)

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    assert "leaves" in tables
    assert "leave_source_refs" in tables

    leave_columns = {column["name"] for column in inspector.get_columns("leaves")}
    assert leave_columns.issuperset(
        {"id", "user_id", "start_date", "end_date", "type", "status", "duration_type", "created_at", "updated_at"}
    )

    ref_columns = {column["name"] for column in inspector.get_columns("leave_source_refs")}
    assert ref_columns.issuperset({"leave_id", "source_type", "source_id"})

    Base.metadata.drop_all(engine)


def test_leave_receives_uuid_and_defaults_on_flush():
    Base.metadata.create_all(get_engine())

    with session_scope() as session:
        leave = _leave()
        assert leave.id is None
        session.add(leave)
        session.flush()
        assert len(leave.id) == 36
        assert leave.duration_type == "FULL_DAY"
        assert leave.source_refs[0].leave_id == leave.id


def test_add_source_ref_is_idempotent():
    leave = _leave()

    again = leave.add_source_ref(SourceType.SLACK, "V1")

    assert again is leave.source_refs[0]
    assert len(leave.source_refs) == 1


def test_source_reference_is_unique_across_leaves():
    Base.metadata.create_all(get_engine())

    with session_scope() as session:
        session.add(_leave(user_id="U1", source_id="V1"))

    with pytest.raises(IntegrityError):
        with session_scope() as session:
            session.add(_leave(user_id="U2", source_id="V1"))

    with session_scope() as session:
        assert session.query(LeaveSourceRef).count() == 1


def test_sqlite_connections_wait_on_locks_and_enforce_foreign_keys():
    with get_engine().connect() as connection:
        busy_timeout = connection.execute(text("PRAGMA busy_timeout")).scalar()
        foreign_keys = connection.execute(text("PRAGMA foreign_keys")).scalar()

    assert busy_timeout == db.SQLITE_BUSY_TIMEOUT_MS
    assert foreign_keys == 1
