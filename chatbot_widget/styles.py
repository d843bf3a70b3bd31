"""
Three-tier style resolution.

For a ``(component, element)`` pair the resolved style map is built from,
in increasing precedence:

a. defaults derived from the global ``style.messages`` section (and
   ``style.themeColor``) through the fixed :data:`DEFAULT_SOURCES` table;
b. ``style.components[component][element]`` from the effective config;
c. the per-message override for the same pair.

Later tiers overwrite same-named properties; ``None`` values are dropped
at every tier, so an unset property is simply absent.
"""

import re

# ---------------------------------------------------------------------------
# Tier (a) lookup table
# Values are dotted paths into the config ``style`` section.
# ---------------------------------------------------------------------------

_BUTTON_COLORS = {
    "backgroundColor": "messages.buttonColor",
    "color":           "messages.buttonTextColor",
}

DEFAULT_SOURCES: dict[tuple[str, str], dict[str, str]] = {
    ("buttons", "button"):       _BUTTON_COLORS,
    ("carousel", "card"):        {"backgroundColor": "messages.botBubbleColor"},
    ("carousel", "cardTitle"):   {"color": "messages.botTextColor"},
    ("carousel", "cardSubtitle"): {"color": "messages.botTextColor"},
    ("faq", "question"):         {"color": "messages.botTextColor"},
    ("rating", "star"):          {"color": "messages.buttonColor"},
    ("rating", "starHover"):     {"color": "themeColor"},
    ("rating", "starSelected"):  {"color": "themeColor"},
    ("locations", "button"):     _BUTTON_COLORS,
    ("table", "header"):         _BUTTON_COLORS,
    ("form", "submitButton"):    _BUTTON_COLORS,
    ("form", "input"): {
        "backgroundColor": "messages.inputBackground",
        "color":           "messages.inputTextColor",
        "borderColor":     "messages.inputBorderColor",
    },
}

#: Presentation constants that do not depend on the config.
FIXED_DEFAULTS: dict[tuple[str, str], dict[str, str]] = {
    ("video", "video"): {
        "maxWidth":     "250px",
        "borderRadius": "8px",
        "marginTop":    "8px",
    },
}


def _lookup(style: dict, path: str):
    node = style
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _apply(target: dict, layer) -> None:
    if not isinstance(layer, dict):
        return
    for prop, value in layer.items():
        if value is not None:
            target[prop] = value


class StyleResolver:
    """Resolves style maps against one snapshot of the effective config.

    A resolver never caches and never mutates its config, so resolving
    the same inputs twice yields the same map.
    """

    def __init__(self, config: dict) -> None:
        style = config.get("style")
        self._style: dict = style if isinstance(style, dict) else {}

    def defaults(self, component: str, element: str) -> dict:
        """Tier (a) for one pair."""
        result = dict(FIXED_DEFAULTS.get((component, element), {}))
        for prop, path in DEFAULT_SOURCES.get((component, element), {}).items():
            value = _lookup(self._style, path)
            if value is not None:
                result[prop] = value
        return result

    def configured(self, component: str, element: str) -> dict:
        """Tier (b) for one pair."""
        value = _lookup(self._style, "components")
        if not isinstance(value, dict):
            return {}
        per_component = value.get(component)
        if not isinstance(per_component, dict):
            return {}
        per_element = per_component.get(element)
        return per_element if isinstance(per_element, dict) else {}

    def resolve(
        self,
        component: str,
        element: str,
        override: dict | None = None,
    ) -> dict:
        """Return the merged style map for ``(component, element)``."""
        styles: dict = {}
        _apply(styles, self.defaults(component, element))
        _apply(styles, self.configured(component, element))
        _apply(styles, override)
        return styles


def override_for(tree, component: str, element: str) -> dict:
    """Extract the per-message override for a pair from a style tree.

    Message style trees mirror the resolver namespace:
    ``{"buttons": {"button": {...}}, "carousel": {"card": {...}}}``.
    """
    if not isinstance(tree, dict):
        return {}
    per_component = tree.get(component)
    if not isinstance(per_component, dict):
        return {}
    per_element = per_component.get(element)
    return dict(per_element) if isinstance(per_element, dict) else {}


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def css_property(prop: str) -> str:
    """``backgroundColor`` → ``background-color``; custom properties pass through."""
    if prop.startswith("--"):
        return prop
    return _CAMEL_RE.sub("-", prop).lower()


def to_css(style: dict) -> str:
    """Serialise a resolved style map as an inline CSS declaration list."""
    return "; ".join(f"{css_property(k)}: {v}" for k, v in style.items())
