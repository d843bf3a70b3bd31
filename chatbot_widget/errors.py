"""
Error taxonomy for the chatbot widget.

None of these is fatal to the widget: every caller that can receive one
logs it and degrades to a fallback message or a silent no-op, so the user
can always keep typing and sending.
"""


class WidgetError(Exception):
    """Base class that preserves diagnostic context for debugging.

    Attributes
    ----------
    status_code : int | None
        HTTP status code (``None`` for non-HTTP errors).
    endpoint : str
        The URL that was called, if any.
    response_body : str
        First 500 chars of the response body.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        response_body: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:  # noqa: D105
        parts = [super().__str__()]
        if self.status_code is not None:
            parts.append(f"  HTTP {self.status_code}")
        if self.endpoint:
            parts.append(f"  Endpoint: {self.endpoint}")
        if self.response_body:
            parts.append(f"  Response: {self.response_body[:500]}")
        return "\n".join(parts)


class ConfigParseError(WidgetError):
    """The embed-time configuration is not a valid JSON object."""


class ConfigFetchError(WidgetError):
    """A remote configuration endpoint was unreachable or returned junk."""


class BotAPIError(WidgetError):
    """The bot backend failed (non-2xx, network error, malformed body)."""


class PersistenceError(WidgetError):
    """The key/value store is unavailable, full, or disabled."""


class RenderSkip(Exception):
    """Raised inside the renderer when a field cannot be rendered.

    Never escapes :class:`~chatbot_widget.renderer.MessageRenderer`; the
    field simply produces no node.
    """
