"""
Explicit widget context shared by every component.

There is no global widget instance: the :class:`WidgetContext` holding
the config resolver, session store, chrome and render target is passed to
each component's constructor.
"""

from dataclasses import dataclass, field

from .config import ConfigResolver
from .render_tree import Node
from .session_store import SessionStore
from .styles import StyleResolver


@dataclass
class Chrome:
    """Text and placement of the widget frame (header, input, send button).

    Actual drawing is left to the host; the core only keeps these values
    in step with the effective config.
    """

    title: str = ""
    placeholder: str = ""
    send_label: str = ""
    theme_color: str = ""
    position: str = ""
    is_open: bool = False
    input_value: str = ""

    def apply_config(self, config: dict) -> None:
        self.title = config["botName"]
        self.placeholder = config["inputPlaceholder"]
        self.send_label = config["sendButtonText"]
        self.theme_color = config["themeColor"]
        self.position = config["position"]

    def toggle(self) -> bool:
        self.is_open = not self.is_open
        return self.is_open


@dataclass
class WidgetContext:
    config: ConfigResolver
    session: SessionStore
    chrome: Chrome = field(default_factory=Chrome)
    #: Rendered message nodes, in display order.
    view: list[Node] = field(default_factory=list)

    def style_resolver(self) -> StyleResolver:
        """Resolver bound to the current effective config snapshot."""
        return StyleResolver(self.config.effective)
