"""
Message renderer.

Turns a message dict into a :class:`~chatbot_widget.render_tree.Node`
tree.  A message may carry several content variants at once; one child
node is emitted per populated field, always in the order

    text → buttons → image → video → carousel → custom

and a ``custom`` payload is expanded in the order

    locations → faq_list → table → rating → forms → video

A missing or malformed field produces no node (``RenderSkip``); rendering
a message never raises.

Every styled node records its ``(component, element, override)`` triple
and is resolved through :class:`~chatbot_widget.styles.StyleResolver`.
The override for a top-level field comes from ``message["style"]``; for
custom payloads from ``custom["style"]``.  Both are keyed
``style[component][element]``.

Interactive nodes (buttons, stars, FAQ questions, form controls) get a
handler; events reach it through :meth:`MessageRenderer.dispatch`.
Outgoing messages go through the *submit* callback as
``(display_text, payload)``; links through *open_url*.
"""

import json
import logging
from typing import Callable

from .context import WidgetContext
from .errors import RenderSkip
from .markdown import parse_markdown
from .models import SENDER_USER, custom_variants, message_variants
from .render_tree import Event, Node
from .styles import StyleResolver, override_for

log = logging.getLogger("chatbot_widget")

SubmitCallback = Callable[[str, str], None]
OpenUrlCallback = Callable[[str], None]

# Errors that mean "the backend sent something of the wrong shape".
_MALFORMED = (RenderSkip, TypeError, KeyError, ValueError, AttributeError, IndexError)

STAR_CHAR = "★"
DEFAULT_RATING_TITLE = "Please rate:"
DEFAULT_SUBMIT_TEXT = "Submit"
MAP_LINK_TEXT = "View on Map"

YOUTUBE_EMBED_URL = "https://www.youtube.com/embed/{video_id}?autoplay=0"
YOUTUBE_ALLOW = (
    "accelerometer; autoplay; clipboard-write; encrypted-media; "
    "gyroscope; picture-in-picture"
)
GOOGLE_MAPS_URL = "https://www.google.com/maps?q={lat},{lng}"
STATIC_MAP_URL = (
    "https://maps.googleapis.com/maps/api/staticmap"
    "?center={lat},{lng}&zoom=14&size=400x200&markers=color:red%7C{lat},{lng}"
)


def rating_payload(rating: int) -> str:
    return f'/rate_service{{"rating":{rating}}}'


def form_payload(prefix: str, values: dict) -> str:
    """Configured prefix immediately followed by compact JSON of the values."""
    return prefix + json.dumps(values, separators=(",", ":"), ensure_ascii=False)


def form_echo(values: dict) -> str:
    pairs = ", ".join(f"{k}: {v}" for k, v in values.items())
    return f"Submitted form: {pairs}"


def youtube_id(url: str) -> str | None:
    """Return the video id for YouTube watch/short URLs, else ``None``."""
    if "youtu.be" in url:
        return url.rstrip("/").split("/")[-1].split("?")[0]
    if "youtube.com/watch" in url:
        return url.split("v=")[1].split("&")[0]
    return None


class _Scope:
    """Style context for one subtree: a resolver plus an override tree."""

    def __init__(self, resolver: StyleResolver, tree) -> None:
        self.resolver = resolver
        self.tree = tree if isinstance(tree, dict) else {}

    def node(
        self,
        tag: str,
        component: str,
        element: str,
        classes: list[str] | None = None,
        base_override: dict | None = None,
        extra_override: dict | None = None,
        **kwargs,
    ) -> Node:
        override = {
            **(base_override or {}),
            **override_for(self.tree, component, element),
            **(extra_override or {}),
        }
        node = Node(
            tag,
            classes=list(classes or []),
            component=component,
            element=element,
            override=override,
            **kwargs,
        )
        node.style = self.resolver.resolve(component, element, override)
        return node


class MessageRenderer:
    """Polymorphic dispatcher from message dicts to render trees."""

    def __init__(
        self,
        context: WidgetContext,
        submit: SubmitCallback | None = None,
        open_url: OpenUrlCallback | None = None,
    ) -> None:
        self._context = context
        self._submit_cb = submit
        self._open_url_cb = open_url
        self._builders = {
            "text":     self._render_text,
            "buttons":  self._render_buttons,
            "image":    self._render_image,
            "video":    self._render_video,
            "carousel": self._render_carousel,
            "custom":   self._render_custom,
        }
        self._custom_builders = {
            "locations": self._render_locations,
            "faq_list":  self._render_faq,
            "table":     self._render_table,
            "rating":    self._render_rating,
            "forms":     self._render_form,
            "video":     self._render_video,
        }

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def render(self, message: dict) -> Node:
        """Render one message.  Never raises for malformed content."""
        resolver = self._context.style_resolver()
        sender = "user" if message.get("sender") == SENDER_USER else "bot"
        root = Node("div", classes=["chatbot-message", sender])
        scope = _Scope(resolver, message.get("style"))

        for name, value in message_variants(message):
            try:
                root.append(self._builders[name](value, scope))
            except _MALFORMED as exc:
                log.debug("[RENDER] Skipped %s field: %s: %s",
                          name, type(exc).__name__, exc)
        return root

    def dispatch(self, node: Node, event: Event) -> bool:
        """Route *event* to *node*.  Returns whether it was handled."""
        return node.dispatch(event)

    def restyle(self, node: Node) -> None:
        """Recompute styles of an already-rendered tree against the current config."""
        node.restyle(self._context.style_resolver())

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _submit(self, text: str, payload: str) -> None:
        if self._submit_cb is None:
            log.debug("[RENDER] No submit callback; dropping %r", payload)
            return
        self._submit_cb(text, payload)

    def _open_url(self, url: str) -> None:
        if self._open_url_cb is None:
            log.debug("[RENDER] No open_url callback; dropping %s", url)
            return
        self._open_url_cb(url)

    # ------------------------------------------------------------------
    # Top-level fields
    # ------------------------------------------------------------------

    def _render_text(self, text, scope: _Scope) -> Node:
        if not isinstance(text, str):
            raise RenderSkip("text is not a string")
        return Node("div", classes=["chatbot-message-text"],
                    text=text, html=parse_markdown(text))

    def _render_buttons(
        self,
        buttons,
        scope: _Scope,
        button_style: dict | None = None,
    ) -> Node:
        if not isinstance(buttons, list) or not buttons:
            raise RenderSkip("buttons is not a non-empty list")

        container = scope.node("div", "buttons", "container",
                               classes=["chatbot-button-container"])
        group: list[Node] = []

        for btn in buttons:
            if not isinstance(btn, dict):
                continue
            color = btn.get("button_color")
            color_override = (
                {"backgroundColor": color, "color": "white", "borderColor": color}
                if color else None
            )
            title = str(btn.get("title", ""))
            button = scope.node(
                "button", "buttons", "button",
                classes=["chatbot-button"],
                text=title,
                base_override=color_override,
                extra_override=button_style,
            )

            # Exactly one action; payload wins over url wins over question.
            if btn.get("payload"):
                action, target = "payload", str(btn["payload"])
            elif btn.get("url"):
                action, target = "url", str(btn["url"])
            elif btn.get("question"):
                action, target = "question", str(btn["question"])
            else:
                action, target = None, None

            if action:
                button.attrs["data-action"] = action
                button.handler = self._button_handler(group, title, action, target)
            group.append(button)
            container.append(button)

        if not group:
            raise RenderSkip("no usable buttons")
        return container

    def _button_handler(self, group: list[Node], title: str, action: str, target: str):
        def on_click(node: Node, event: Event) -> None:
            if event.type != "click":
                return
            if action == "url":
                self._open_url(target)
                return
            for b in group:
                b.disabled = True
            self._submit(title, target)
        return on_click

    def _render_image(self, url, scope: _Scope) -> Node:
        if not isinstance(url, str):
            raise RenderSkip("image is not a URL string")
        return scope.node("img", "image", "image",
                          classes=["chatbot-image"], attrs={"src": url})

    def _render_video(self, video, scope: _Scope) -> Node:
        if not isinstance(video, dict) or not video.get("url"):
            raise RenderSkip("video has no url")
        url = str(video["url"])

        video_id = youtube_id(url)
        if video_id:
            return scope.node(
                "iframe", "video", "iframe",
                classes=["chatbot-video-embed"],
                attrs={
                    "src": YOUTUBE_EMBED_URL.format(video_id=video_id),
                    "width": "250",
                    "height": "140",
                    "allow": YOUTUBE_ALLOW,
                    "allowfullscreen": True,
                },
            )

        attrs = {"src": url, "controls": True}
        if video.get("autoplay"):
            # Browsers only autoplay muted media.
            attrs["muted"] = True
            attrs["autoplay"] = True
        return scope.node("video", "video", "video",
                          classes=["chatbot-video"], attrs=attrs)

    def _render_carousel(self, items, scope: _Scope) -> Node:
        if not isinstance(items, list) or not items:
            raise RenderSkip("carousel is not a non-empty list")

        container = scope.node("div", "carousel", "container",
                               classes=["chatbot-carousel-container"])
        for item in items:
            if not isinstance(item, dict):
                continue
            card = scope.node("div", "carousel", "card",
                              classes=["chatbot-carousel-card"])
            if item.get("image_url"):
                card.append(scope.node(
                    "img", "carousel", "cardImage",
                    classes=["chatbot-carousel-card-image"],
                    attrs={"src": str(item["image_url"])},
                ))

            content = scope.node("div", "carousel", "cardContent",
                                 classes=["chatbot-carousel-card-content"])
            content.append(scope.node(
                "h3", "carousel", "cardTitle",
                classes=["chatbot-carousel-card-title"],
                text=str(item.get("title", "")),
            ))
            if item.get("subtitle"):
                content.append(scope.node(
                    "p", "carousel", "cardSubtitle",
                    classes=["chatbot-carousel-card-subtitle"],
                    text=str(item["subtitle"]),
                ))
            if item.get("buttons"):
                button_style = item.get("button_style")
                try:
                    content.append(self._render_buttons(
                        item["buttons"], scope,
                        button_style=button_style if isinstance(button_style, dict) else None,
                    ))
                except RenderSkip as exc:
                    log.debug("[RENDER] Skipped carousel buttons: %s", exc)

            card.append(content)
            container.append(card)

        if not container.children:
            raise RenderSkip("no usable carousel cards")
        return container

    # ------------------------------------------------------------------
    # Custom payloads
    # ------------------------------------------------------------------

    def _render_custom(self, custom, scope: _Scope) -> Node:
        if not isinstance(custom, dict):
            raise RenderSkip("custom is not an object")
        scope = _Scope(scope.resolver, custom.get("style"))
        container = scope.node("div", "custom", "container",
                               classes=["chatbot-custom-payload"])

        for name, value in custom_variants(custom):
            try:
                container.append(self._custom_builders[name](value, scope))
            except _MALFORMED as exc:
                log.debug("[RENDER] Skipped custom %s: %s: %s",
                          name, type(exc).__name__, exc)

        if not container.children:
            raise RenderSkip("custom payload produced nothing")
        return container

    def _render_locations(self, locations, scope: _Scope) -> Node:
        if not isinstance(locations, list) or not locations:
            raise RenderSkip("locations is not a non-empty list")

        maps_key = self._context.config.effective.get("features", {}).get("mapsApiKey")
        container = scope.node("div", "locations", "container",
                               classes=["chatbot-location-cards"])
        for location in locations:
            if not isinstance(location, dict):
                continue
            lat, lng = location.get("lat"), location.get("lng")
            if lat is None or lng is None:
                log.debug("[RENDER] Skipped location without coordinates: %r",
                          location.get("name"))
                continue
            name = str(location.get("name", ""))
            static_map = STATIC_MAP_URL.format(lat=lat, lng=lng)
            if maps_key:
                static_map += f"&key={maps_key}"
            map_url = GOOGLE_MAPS_URL.format(lat=lat, lng=lng)

            card = scope.node("div", "locations", "card",
                              classes=["chatbot-location-card"])
            card.append(scope.node("img", "locations", "map",
                                   classes=["chatbot-location-map"],
                                   attrs={"src": static_map, "alt": f"{name} map"}))

            body = scope.node("div", "locations", "body",
                              classes=["chatbot-location-body"])
            body.append(scope.node("div", "locations", "title",
                                   classes=["chatbot-location-title"], text=name))
            if location.get("address"):
                body.append(scope.node("div", "locations", "address",
                                       classes=["chatbot-location-address"],
                                       text=str(location["address"])))
            link = scope.node("a", "locations", "button",
                              classes=["chatbot-location-button"],
                              text=MAP_LINK_TEXT,
                              attrs={"href": map_url, "target": "_blank"})
            link.handler = self._link_handler(map_url)
            body.append(link)

            card.append(body)
            container.append(card)

        if not container.children:
            raise RenderSkip("no usable locations")
        return container

    def _link_handler(self, url: str):
        def on_click(node: Node, event: Event) -> None:
            if event.type == "click":
                self._open_url(url)
        return on_click

    def _render_faq(self, faqs, scope: _Scope) -> Node:
        if not isinstance(faqs, list) or not faqs:
            raise RenderSkip("faq_list is not a non-empty list")

        container = scope.node("div", "faq", "container",
                               classes=["chatbot-faq-list-container"])
        for faq in faqs:
            if not isinstance(faq, dict):
                continue
            item = scope.node("div", "faq", "item", classes=["chatbot-faq-item"])
            question = scope.node("div", "faq", "question",
                                  classes=["chatbot-faq-question"],
                                  text=str(faq.get("question", "")))
            answer = scope.node("div", "faq", "answer",
                                classes=["chatbot-faq-answer"],
                                html=str(faq.get("answer", "")))
            question.handler = self._faq_handler(item, answer, scope.tree)
            item.append(question)
            item.append(answer)
            container.append(item)

        if not container.children:
            raise RenderSkip("no usable FAQ entries")
        return container

    def _faq_handler(self, item: Node, answer: Node, tree: dict):
        def on_click(node: Node, event: Event) -> None:
            if event.type != "click":
                return
            expanded = not item.has_class("expanded")
            item.toggle_class("expanded", expanded)
            answer.element = "expandedAnswer" if expanded else "answer"
            answer.override = override_for(tree, "faq", answer.element)
            answer.restyle(self._context.style_resolver(), recursive=False)
        return on_click

    def _render_table(self, table, scope: _Scope) -> Node:
        if not isinstance(table, dict):
            raise RenderSkip("table is not an object")
        headers, rows = table.get("headers"), table.get("rows")
        if not isinstance(headers, list) or not isinstance(rows, list):
            raise RenderSkip("table needs headers and rows")

        container = scope.node("div", "table", "container",
                               classes=["chatbot-table-container"])
        table_node = scope.node("table", "table", "table", classes=["chatbot-table"])

        header_row = Node("tr")
        for header in headers:
            header_row.append(scope.node("th", "table", "header", text=str(header)))
        table_node.append(Node("thead", children=[header_row]))

        body = Node("tbody")
        for row in rows:
            tr = Node("tr")
            for cell in row:
                tr.append(scope.node("td", "table", "cell",
                                     text="" if cell is None else str(cell)))
            body.append(tr)
        table_node.append(body)

        container.append(table_node)
        return container

    def _render_rating(self, rating, scope: _Scope) -> Node:
        if not isinstance(rating, dict) or not rating.get("scale"):
            raise RenderSkip("rating has no scale")
        scale = int(rating["scale"])
        if scale < 1:
            raise RenderSkip(f"rating scale {scale} < 1")

        container = scope.node("div", "rating", "container",
                               classes=["chatbot-rating-container"])
        container.append(scope.node("div", "rating", "title",
                                    classes=["chatbot-rating-title"],
                                    text=str(rating.get("title") or DEFAULT_RATING_TITLE)))
        stars_box = scope.node("div", "rating", "starsContainer",
                               classes=["chatbot-stars"])
        stars: list[Node] = []

        # Laid out high to low; the CSS reverses them visually.
        for value in range(scale, 0, -1):
            star = scope.node("span", "rating", "star",
                              classes=["chatbot-star"],
                              text=STAR_CHAR,
                              attrs={"data-value": value})
            star.handler = self._star_handler(stars, value, scope.tree)
            stars.append(star)
            stars_box.append(star)

        container.append(stars_box)
        return container

    def _star_handler(self, stars: list[Node], value: int, tree: dict):
        def restyle_stars() -> None:
            resolver = self._context.style_resolver()
            for s in stars:
                if s.has_class("hover"):
                    s.element = "starHover"
                elif s.has_class("selected"):
                    s.element = "starSelected"
                else:
                    s.element = "star"
                s.override = override_for(tree, "rating", s.element)
                s.restyle(resolver, recursive=False)

        def on_event(node: Node, event: Event) -> None:
            if event.type == "mouseover":
                for s in stars:
                    s.toggle_class("hover", s.attrs["data-value"] >= value)
            elif event.type == "mouseout":
                for s in stars:
                    s.toggle_class("hover", False)
            elif event.type == "click":
                for s in stars:
                    s.toggle_class("selected", s.attrs["data-value"] <= value)
                restyle_stars()
                self._submit(f"Rated {value} stars", rating_payload(value))
                return
            else:
                return
            restyle_stars()
        return on_event

    def _render_form(self, form, scope: _Scope) -> Node:
        if (
            not isinstance(form, dict)
            or not isinstance(form.get("fields"), list)
            or not form["fields"]
            or not form.get("submit_payload")
        ):
            raise RenderSkip("form needs fields and submit_payload")

        container = scope.node("div", "form", "container",
                               classes=["chatbot-form-container"])
        if form.get("title"):
            container.append(scope.node("div", "form", "title",
                                        classes=["chatbot-form-title"],
                                        text=str(form["title"])))

        form_node = scope.node("form", "form", "form", classes=["chatbot-form"])
        fields = [f for f in form["fields"] if isinstance(f, dict) and f.get("field_name")]
        values: dict[str, str] = {}
        inputs: dict[str, Node] = {}

        for field in fields:
            name = str(field["field_name"])
            field_id = f"chatbot-form-{name}"
            field_div = scope.node("div", "form", "field", classes=["chatbot-form-field"])
            if field.get("label"):
                field_div.append(scope.node("label", "form", "label",
                                            text=str(field["label"]),
                                            attrs={"for": field_id}))

            kind = field.get("type") or "text"
            attrs = {"name": name, "id": field_id, "required": bool(field.get("required"))}
            if kind == "select" and isinstance(field.get("options"), list):
                control = scope.node("select", "form", "input", attrs=attrs)
                for option in field["options"]:
                    control.append(Node("option", text=str(option),
                                        attrs={"value": str(option)}))
                values[name] = str(field["options"][0]) if field["options"] else ""
            elif kind == "textarea":
                attrs["placeholder"] = field.get("placeholder") or ""
                control = scope.node("textarea", "form", "input", attrs=attrs)
                values[name] = ""
            else:
                attrs["type"] = "text" if kind == "select" else kind
                attrs["placeholder"] = field.get("placeholder") or ""
                control = scope.node("input", "form", "input", attrs=attrs)
                values[name] = ""

            control.handler = self._input_handler(values, name)
            inputs[name] = control
            field_div.append(control)
            form_node.append(field_div)

        if not fields:
            raise RenderSkip("form has no usable fields")

        submit_button = scope.node(
            "button", "form", "submitButton",
            classes=["chatbot-form-submit-button"],
            text=str(form.get("submit_button_text") or DEFAULT_SUBMIT_TEXT),
            attrs={"type": "submit"},
        )
        on_submit = self._form_handler(form_node, fields, values, inputs,
                                       str(form["submit_payload"]))
        form_node.handler = on_submit
        submit_button.handler = on_submit
        form_node.append(submit_button)

        container.append(form_node)
        return container

    @staticmethod
    def _input_handler(values: dict, name: str):
        def on_input(node: Node, event: Event) -> None:
            if event.type == "input":
                values[name] = "" if event.value is None else str(event.value)
                node.toggle_class("invalid", False)
        return on_input

    def _form_handler(self, form_node: Node, fields: list[dict], values: dict,
                      inputs: dict[str, Node], prefix: str):
        def on_submit(node: Node, event: Event) -> None:
            if event.type not in ("submit", "click") or form_node.disabled:
                return
            if event.values:
                for key, value in event.values.items():
                    if key in values:
                        values[key] = "" if value is None else str(value)

            missing = [
                str(f["field_name"]) for f in fields
                if f.get("required") and not values.get(str(f["field_name"]), "").strip()
            ]
            if missing:
                for name in missing:
                    inputs[name].toggle_class("invalid", True)
                log.debug("[RENDER] Form submission blocked; missing %s", missing)
                return

            snapshot = {str(f["field_name"]): values.get(str(f["field_name"]), "")
                        for f in fields}
            for control in form_node.walk():
                if control.tag in ("form", "input", "select", "textarea", "button"):
                    control.disabled = True
            self._submit(form_echo(snapshot), form_payload(prefix, snapshot))
        return on_submit
