"""
Bot backend client.

The backend is a black-box HTTP service: ``POST {botUrl}`` with
``{"sender": <session id>, "message": <text>, "customData": {"payload": ...}}``
returns a JSON array of message-shaped objects.  Anything else (non-2xx,
network failure, a body that is not a JSON array) is a
:class:`~chatbot_widget.errors.BotAPIError`.

The client is synchronous (``requests``); the conversation controller
runs it off the event loop.
"""

import json
import logging

import requests

from .errors import BotAPIError

log = logging.getLogger("chatbot_widget")

REQUEST_TIMEOUT = 30

_HEADERS = {
    "Content-Type": "application/json",
    "Accept":       "application/json",
}


def _extract_error_detail(response: requests.Response) -> str:
    """Best-effort readable error from a failed response."""
    try:
        body = response.json()
        if isinstance(body, dict):
            for key in ("error", "detail", "message"):
                if key in body:
                    return str(body[key])
        return response.text[:500]
    except ValueError:
        return response.text[:500] if response.text else "(empty body)"


def build_request_body(sender: str, message: str, payload: str | None = None) -> dict:
    """Request body for one user turn; ``customData`` only when a payload is set."""
    body: dict = {"sender": sender, "message": message}
    if payload:
        body["customData"] = {"payload": payload}
    return body


class BotClient:
    """Thin wrapper around the bot message endpoint."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT) -> None:
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(_HEADERS)

    def post_message(
        self,
        url: str,
        sender: str,
        message: str,
        payload: str | None = None,
    ) -> list[dict]:
        """Send one user turn and return the bot's response objects.

        Non-object entries in the response array are dropped.
        """
        body = build_request_body(sender, message, payload)
        log.debug("[API] POST %s  message=%r  payload=%r", url, message[:120], payload)

        try:
            response = self._session.post(url, json=body, timeout=self._timeout)
        except requests.RequestException as exc:
            raise BotAPIError(
                f"Network error — could not reach bot backend: "
                f"{type(exc).__name__}: {exc}",
                endpoint=url,
            ) from exc

        log.debug("[API] POST %s → %d  (body len=%d)",
                  url, response.status_code, len(response.text or ""))

        if not response.ok:
            raise BotAPIError(
                f"Bot backend request failed (HTTP {response.status_code}).\n"
                f"{_extract_error_detail(response)}",
                status_code=response.status_code,
                endpoint=url,
                response_body=response.text[:500] if response.text else "",
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise BotAPIError(
                "Bot backend returned a non-JSON response.",
                status_code=response.status_code,
                endpoint=url,
                response_body=response.text[:500] if response.text else "",
            ) from exc

        if not isinstance(data, list):
            raise BotAPIError(
                f"Bot backend returned {type(data).__name__}, expected a list.",
                status_code=response.status_code,
                endpoint=url,
                response_body=response.text[:500] if response.text else "",
            )

        messages = [item for item in data if isinstance(item, dict)]
        if len(messages) < len(data):
            log.warning("[API] Dropped %d non-object entries from bot response.",
                        len(data) - len(messages))
        return messages

    def close(self) -> None:
        self._session.close()
