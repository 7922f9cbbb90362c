"""Thin wrapper utilities around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from slack_sdk import WebClient
from slack_sdk.errors import SlackClientError
from slack_sdk.webhook import WebhookClient

from slack_leave_engine.errors import TransientDeliveryError

_DELIVERY_ERRORS = (SlackClientError, OSError)


def _error_code(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            return str(response.get("error") or exc)
        except AttributeError:
            return str(exc)
    return str(exc)


class SlackClient:
    """Encapsulate Slack WebClient interactions for easier testing.

    Every Slack-side failure surfaces as :class:`TransientDeliveryError`.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        client: WebClient | None = None,
        webhook_factory: Callable[[str], WebhookClient] = WebhookClient,
    ) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a bot token must be provided.")

        self._client = client or WebClient(token=token)
        self._webhook_factory = webhook_factory

    @property
    def client(self) -> WebClient:
        """Expose the underlying WebClient for advanced use cases."""

        return self._client

    def open_view(self, *, trigger_id: str | None, view: Mapping[str, Any]) -> str | None:
        """Open a modal for *trigger_id* and return the new view id."""

        if not trigger_id or not trigger_id.strip():
            raise TransientDeliveryError("views.open", "missing_trigger_id")

        try:
            response = self._client.views_open(trigger_id=trigger_id, view=dict(view))
        except _DELIVERY_ERRORS as exc:
            raise TransientDeliveryError("views.open", _error_code(exc)) from exc

        opened = response.get("view") or {}
        return opened.get("id")

    def post_message(
        self,
        *,
        channel: str | None,
        text: str,
        blocks: Sequence[Mapping[str, Any]],
        thread_ts: str | None = None,
    ) -> str | None:
        """Post a Block Kit message, threaded when *thread_ts* is given, and return its ts."""

        if not channel or not channel.strip():
            raise TransientDeliveryError("chat.postMessage", "missing_channel")

        kwargs: dict[str, Any] = {"channel": channel, "text": text, "blocks": list(blocks)}
        if thread_ts:
            kwargs["thread_ts"] = thread_ts

        try:
            response = self._client.chat_postMessage(**kwargs)
        except _DELIVERY_ERRORS as exc:
            raise TransientDeliveryError("chat.postMessage", _error_code(exc)) from exc

        return response.get("ts")

    def post_ephemeral(self, *, response_url: str | None, text: str) -> None:
        """Send an ephemeral reply through a slash command's ``response_url``."""

        if not response_url:
            raise TransientDeliveryError("response_url", "missing_response_url")

        try:
            response = self._webhook_factory(response_url).send(text=text, response_type="ephemeral")
        except _DELIVERY_ERRORS as exc:
            raise TransientDeliveryError("response_url", str(exc)) from exc

        if response.status_code != 200:
            raise TransientDeliveryError("response_url", f"status_{response.status_code}")
