"""Utility script to reset the local leave database.

Usage:
    python scripts/reset_local_db.py

Environment:
    Ensure DATABASE_URL (and other required settings) are available in
    the current shell before running this script.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_leave_engine.db import Base, get_engine  # noqa: E402
from slack_leave_engine import models  # noqa: E402,F401


def reset_database() -> list[str]:
    """Drop and recreate every table; return the recreated table names."""

    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    return sorted(Base.metadata.tables)


if __name__ == "__main__":
    tables = reset_database()
    print(f"Local database reset ({', '.join(tables)}).")
