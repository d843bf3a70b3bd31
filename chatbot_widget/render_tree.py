"""
Render tree produced by the message renderer.

A :class:`Node` is a small, framework-free stand-in for a DOM element:
tag, CSS classes, attributes, text (or pre-formatted HTML) and children.
Each node remembers the ``(component, element, override)`` triple its
style came from, so styles can be recomputed against a new config without
rebuilding the tree.

Interaction is modelled as :class:`Event` records delivered to a node's
handler through :meth:`Node.dispatch`; visual state (selected stars,
expanded FAQ items, disabled buttons) lives on the nodes and is derived
from those events.
"""

import html
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from .styles import StyleResolver, to_css

VOID_TAGS = frozenset({"img", "input", "br"})


@dataclass
class Event:
    """A user interaction routed to a rendered element."""

    type: str                 # click | mouseover | mouseout | input | submit
    value: Any = None
    values: dict | None = None


@dataclass
class Node:
    tag: str
    classes: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["Node"] = field(default_factory=list)
    component: str | None = None
    element: str | None = None
    override: dict = field(default_factory=dict)
    style: dict = field(default_factory=dict)
    disabled: bool = False
    handler: Callable[["Node", Event], None] | None = field(
        default=None, repr=False, compare=False,
    )

    # ------------------------------------------------------------------
    # Tree helpers
    # ------------------------------------------------------------------

    def append(self, child: "Node | None") -> "Node | None":
        if child is not None:
            self.children.append(child)
        return child

    def walk(self) -> Iterator["Node"]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find_all(self, cls: str) -> list["Node"]:
        return [n for n in self.walk() if cls in n.classes]

    def find(self, cls: str) -> "Node | None":
        return next((n for n in self.walk() if cls in n.classes), None)

    def has_class(self, cls: str) -> bool:
        return cls in self.classes

    def toggle_class(self, cls: str, on: bool) -> None:
        if on and cls not in self.classes:
            self.classes.append(cls)
        elif not on and cls in self.classes:
            self.classes.remove(cls)

    # ------------------------------------------------------------------
    # Styling and events
    # ------------------------------------------------------------------

    def restyle(self, resolver: StyleResolver, recursive: bool = True) -> None:
        """Recompute ``style`` from the stored triple."""
        if self.component and self.element:
            self.style = resolver.resolve(self.component, self.element, self.override)
        if recursive:
            for child in self.children:
                child.restyle(resolver)

    def dispatch(self, event: Event) -> bool:
        """Deliver *event* to this node's handler.

        Disabled nodes and nodes without a handler ignore events.
        Returns whether the event was handled.
        """
        if self.disabled or self.handler is None:
            return False
        self.handler(self, event)
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_html(self) -> str:
        attrs = dict(self.attrs)
        if self.classes:
            attrs["class"] = " ".join(self.classes)
        if self.style:
            attrs["style"] = to_css(self.style)
        if self.disabled:
            attrs["disabled"] = True

        parts = [self.tag]
        for name, value in attrs.items():
            if value is True:
                parts.append(name)
            elif value is False or value is None:
                continue
            else:
                parts.append(f'{name}="{html.escape(str(value), quote=True)}"')
        open_tag = "<" + " ".join(parts) + ">"
        if self.tag in VOID_TAGS:
            return open_tag

        if self.html is not None:
            inner = self.html
        elif self.text is not None:
            inner = html.escape(self.text)
        else:
            inner = ""
        inner += "".join(child.to_html() for child in self.children)
        return f"{open_tag}{inner}</{self.tag}>"

    def to_text(self, indent: int = 0) -> str:
        """Plain-text outline, used by the console host."""
        lines: list[str] = []
        label = self.text if self.text is not None else None
        if label is None and self.tag in ("img", "iframe", "video"):
            label = f"[{self.tag}: {self.attrs.get('src', '')}]"
        if label is None and self.tag == "a":
            label = f"[link: {self.attrs.get('href', '')}]"
        if label:
            lines.append("  " * indent + label)
        for child in self.children:
            text = child.to_text(indent + (1 if label else 0))
            if text:
                lines.append(text)
        return "\n".join(lines)
