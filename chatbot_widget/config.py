"""
Configuration layers and their merge.

The effective configuration is built from up to three layers, lowest
precedence first:

1. the embed-time JSON attribute (parsed once at startup);
2. the remote ``initialConfig`` returned by the appearance API;
3. every later ``configApiUrl`` refresh.

Every top-level key is last-writer-wins except ``style`` and
``features``, which are merged key-by-key one level deep.  Defaults for
the recognised keys are filled in only after all merges, so a default
never shadows a later layer.

The effective config is replaced as a whole after each merge; readers
holding the previous reference keep seeing a complete old config.
"""

import copy
import json
import logging
import time

import requests

from .errors import ConfigFetchError, ConfigParseError

log = logging.getLogger("chatbot_widget")

#: Keys merged one level deep instead of being replaced.
DEEP_MERGE_KEYS: frozenset[str] = frozenset({"style", "features"})

DEFAULTS: dict[str, str] = {
    "botUrl":           "http://0.0.0.0:8000/chat",
    "themeColor":       "#020c15ff",
    "position":         "bottom-right",
    "botName":          "Chatbot",
    "inputPlaceholder": "Type your message...",
    "sendButtonText":   "Send",
}

POSITIONS: tuple[str, ...] = ("bottom-right", "bottom-left", "top-right", "top-left")

DEFAULT_ANIMATION: dict = {"type": "fade-in", "duration": 500}

FETCH_TIMEOUT = 15


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def merge(base: dict, overlay: dict) -> dict:
    """Return a new config with *overlay* applied on top of *base*.

    ``style`` and ``features`` are merged key-by-key (overlay keys win,
    base-only keys survive); every other key is replaced.  Neither input
    is modified.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if (
            key in DEEP_MERGE_KEYS
            and isinstance(value, dict)
            and isinstance(result.get(key), dict)
        ):
            result[key] = {**result[key], **copy.deepcopy(value)}
        else:
            result[key] = copy.deepcopy(value)
    return result


def with_defaults(config: dict) -> dict:
    """Return a copy of *config* with unset recognised keys defaulted."""
    result = copy.deepcopy(config)
    for key, value in DEFAULTS.items():
        if not result.get(key):
            result[key] = value
    if result["position"] not in POSITIONS:
        log.warning("[CFG] Unknown position %r; using %s.",
                    result["position"], DEFAULTS["position"])
        result["position"] = DEFAULTS["position"]
    result.setdefault("style", {})
    result.setdefault("features", {})
    return result


def parse_config_json(raw: str) -> dict:
    """Parse an embed-time configuration attribute.

    Raises :class:`ConfigParseError` when *raw* is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Invalid JSON in chatbot config: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"Chatbot config must be a JSON object, got {type(data).__name__}.",
        )
    return data


def _fetch_json(url: str, params: dict | None = None):
    """GET *url* and return the decoded JSON body.

    Any network, status or decoding problem becomes a
    :class:`ConfigFetchError`.
    """
    log.debug("[CFG] GET %s  params=%s", url, params)
    try:
        response = requests.get(url, params=params, timeout=FETCH_TIMEOUT)
    except requests.RequestException as exc:
        raise ConfigFetchError(
            f"Could not reach config endpoint: {type(exc).__name__}: {exc}",
            endpoint=url,
        ) from exc

    if not response.ok:
        raise ConfigFetchError(
            f"Config endpoint returned HTTP {response.status_code}.",
            status_code=response.status_code,
            endpoint=url,
            response_body=response.text[:500] if response.text else "",
        )
    try:
        return response.json()
    except ValueError as exc:
        raise ConfigFetchError(
            "Config endpoint returned a non-JSON body.",
            status_code=response.status_code,
            endpoint=url,
            response_body=response.text[:500] if response.text else "",
        ) from exc


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class ConfigResolver:
    """Owns the configuration layers and the effective config reference."""

    def __init__(self, embed_config: dict | None = None) -> None:
        self._layers: dict = copy.deepcopy(embed_config or {})
        self._effective: dict = with_defaults(self._layers)

    @classmethod
    def from_embed(cls, raw: str | None) -> "ConfigResolver":
        """Build a resolver from the raw embed-time attribute.

        Malformed JSON is logged and ignored; defaults apply.
        """
        embed: dict = {}
        if raw:
            try:
                embed = parse_config_json(raw)
            except ConfigParseError as exc:
                log.error("[CFG] %s", exc)
        return cls(embed)

    @property
    def effective(self) -> dict:
        """The current effective configuration.  Treat it as read-only."""
        return self._effective

    def apply(self, overlay: dict) -> dict:
        """Merge *overlay* as a new top layer and return the new effective config."""
        layers = merge(self._layers, overlay)
        effective = with_defaults(layers)
        # Swap both references only once the new config is complete.
        self._layers, self._effective = layers, effective
        return effective

    def refresh(self, url: str | None = None) -> dict:
        """Pull ``configApiUrl`` (or *url*) and merge it.

        The request carries a ``t`` cache-busting timestamp.  On failure
        :class:`ConfigFetchError` is raised and the effective config is
        left untouched.
        """
        url = url or self._effective.get("configApiUrl")
        if not url:
            raise ConfigFetchError("No configApiUrl configured.")
        body = _fetch_json(url, params={"t": int(time.time() * 1000)})
        if not isinstance(body, dict):
            raise ConfigFetchError(
                f"Config endpoint returned {type(body).__name__}, expected an object.",
                endpoint=url,
            )
        log.info("[CFG] Refreshed config from %s (%d keys).", url, len(body))
        return self.apply(body)

    def fetch_appearance(self, url: str | None = None) -> bool:
        """Run the startup appearance check.

        Returns whether the widget should be shown.  On ``showChatbot``
        the remote ``initialConfig`` is merged and ``appearanceAnimation``
        recorded.  A failed fetch hides the widget.
        """
        url = url or self._effective.get("appearanceApiUrl")
        if not url:
            return True
        log.info("[CFG] Fetching appearance config from %s", url)
        try:
            body = _fetch_json(url)
        except ConfigFetchError as exc:
            log.error("[CFG] Error fetching appearance configuration: %s", exc)
            log.info("[CFG] Not displaying widget due to API error.")
            return False
        if not isinstance(body, dict) or not body.get("showChatbot"):
            log.info("[CFG] showChatbot is false. Not displaying widget.")
            return False

        overlay = body.get("initialConfig")
        overlay = dict(overlay) if isinstance(overlay, dict) else {}
        if isinstance(body.get("appearanceAnimation"), dict):
            overlay["appearanceAnimation"] = body["appearanceAnimation"]
        self.apply(overlay)
        return True

    @property
    def animation(self) -> dict:
        return self._effective.get("appearanceAnimation") or DEFAULT_ANIMATION
