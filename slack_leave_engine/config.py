"""Pydantic-based configuration helpers for the Slack leave engine."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List

from pydantic import BaseModel, Field, ValidationError, field_validator


class AppSettings(BaseModel):
    """Settings required to verify Slack traffic and reach supporting services."""

    bot_token: str = Field(..., alias="SLACK_BOT_TOKEN")
    signing_secret: str = Field(..., alias="SLACK_SIGNING_SECRET")
    database_url: str = Field(..., alias="DATABASE_URL")
    signature_tolerance_seconds: int = Field(300, alias="SIGNATURE_TOLERANCE_SECONDS")
    slack_command: str = Field("/leave", alias="SLACK_COMMAND")

    @field_validator("signature_tolerance_seconds")
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Signature tolerance must be greater than zero")
        return value

    @field_validator("slack_command")
    @classmethod
    def _normalise_command(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/"):
            value = f"/{value}"
        return value


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        missing = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"]
        if not missing:
            raise RuntimeError(f"Invalid configuration: {exc}") from exc
        message = (
            "Missing required environment variables: "
            f"{_format_missing(missing)}"
        )
        raise RuntimeError(message) from exc
