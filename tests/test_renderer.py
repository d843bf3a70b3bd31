"""Tests for ``chatbot_widget.renderer``.

Submissions and opened links are captured through the renderer's
callbacks; no controller or network is involved.
"""

import json
import unittest

from chatbot_widget.config import ConfigResolver
from chatbot_widget.context import WidgetContext
from chatbot_widget.render_tree import Event, Node
from chatbot_widget.renderer import (
    MessageRenderer,
    form_payload,
    rating_payload,
    youtube_id,
)
from chatbot_widget.session_store import SessionStore
from chatbot_widget.storage import MemoryStore

STYLE = {
    "themeColor": "#theme",
    "messages": {
        "buttonColor": "#btn",
        "buttonTextColor": "#btntext",
        "botTextColor": "#bottext",
        "botBubbleColor": "#bubble",
        "inputBackground": "#inbg",
    },
}


def _make(config: dict | None = None):
    context = WidgetContext(
        config=ConfigResolver(config if config is not None else {"style": STYLE}),
        session=SessionStore(MemoryStore()),
    )
    submitted: list[tuple[str, str]] = []
    opened: list[str] = []
    renderer = MessageRenderer(
        context,
        submit=lambda text, payload: submitted.append((text, payload)),
        open_url=opened.append,
    )
    return renderer, context, submitted, opened


def _click(node: Node) -> bool:
    return node.dispatch(Event("click"))


# -----------------------------------------------------------------------
# Dispatch order
# -----------------------------------------------------------------------

class TestFieldOrder(unittest.TestCase):

    def setUp(self) -> None:
        self.renderer, *_ = _make()

    def test_all_fields_rendered_in_fixed_order(self) -> None:
        message = {
            "sender": "bot",
            # Deliberately out of order in the dict.
            "custom": {"rating": {"scale": 3}},
            "carousel": [{"title": "Card"}],
            "video": {"url": "http://cdn.example/clip.mp4"},
            "image": "http://cdn.example/pic.png",
            "buttons": [{"title": "Go", "payload": "/go"}],
            "text": "Hello **there**",
        }
        root = self.renderer.render(message)
        self.assertEqual(root.classes, ["chatbot-message", "bot"])
        kinds = [child.classes[0] for child in root.children]
        self.assertEqual(kinds, [
            "chatbot-message-text",
            "chatbot-button-container",
            "chatbot-image",
            "chatbot-video",
            "chatbot-carousel-container",
            "chatbot-custom-payload",
        ])

    def test_custom_order(self) -> None:
        custom = {
            "video": {"url": "http://cdn.example/a.webm"},
            "forms": {"fields": [{"field_name": "x"}], "submit_payload": "/f"},
            "rating": {"scale": 2},
            "table": {"headers": ["h"], "rows": [["c"]]},
            "faq_list": [{"question": "Q", "answer": "A"}],
            "locations": [{"lat": 1, "lng": 2, "name": "HQ"}],
        }
        root = self.renderer.render({"sender": "bot", "custom": custom})
        container = root.children[0]
        kinds = [child.classes[0] for child in container.children]
        self.assertEqual(kinds, [
            "chatbot-location-cards",
            "chatbot-faq-list-container",
            "chatbot-table-container",
            "chatbot-rating-container",
            "chatbot-form-container",
            "chatbot-video",
        ])

    def test_user_sender(self) -> None:
        root = self.renderer.render({"sender": "user", "text": "hi"})
        self.assertEqual(root.classes, ["chatbot-message", "user"])

    def test_text_is_markdown_html(self) -> None:
        root = self.renderer.render({"sender": "bot", "text": "**b** <x>"})
        self.assertEqual(root.children[0].html, "<strong>b</strong> &lt;x&gt;")

    def test_link_url_cannot_break_out_of_href(self) -> None:
        root = self.renderer.render({
            "sender": "bot", "text": '[x](http://a" onmouseover="alert(1))',
        })
        out = root.children[0].html
        self.assertNotIn('" onmouseover="', out)
        self.assertIn('href="http://a&quot; onmouseover=&quot;alert(1"', out)

    def test_link(self) -> None:
        root = self.renderer.render({"sender": "bot", "text": "see [docs](http://d/x?a=1&b=2)"})
        self.assertEqual(
            root.children[0].html,
            'see <a href="http://d/x?a=1&amp;b=2" target="_blank" '
            'rel="noopener noreferrer">docs</a>',
        )

    def test_absent_and_unknown_fields_render_nothing(self) -> None:
        root = self.renderer.render({"sender": "bot", "mystery": {"a": 1}, "text": ""})
        self.assertEqual(root.children, [])

    def test_malformed_fields_are_skipped(self) -> None:
        message = {
            "sender": "bot",
            "text": "still here",
            "buttons": "not a list",
            "image": 42,
            "video": {"autoplay": True},
            "carousel": [1, 2],
            "custom": {"rating": {"scale": "many"}, "table": {"headers": ["a"]}},
        }
        root = self.renderer.render(message)
        self.assertEqual(len(root.children), 1)
        self.assertEqual(root.children[0].text, "still here")


# -----------------------------------------------------------------------
# Buttons
# -----------------------------------------------------------------------

class TestButtons(unittest.TestCase):

    def setUp(self) -> None:
        self.renderer, self.context, self.submitted, self.opened = _make()
        root = self.renderer.render({"sender": "bot", "buttons": [
            {"title": "Pay", "payload": "/pay"},
            {"title": "Site", "url": "https://example.com"},
            {"title": "Ask", "question": "What is it?"},
        ]})
        self.buttons = root.children[0].children

    def test_payload_button(self) -> None:
        self.assertTrue(_click(self.buttons[0]))
        self.assertEqual(self.submitted, [("Pay", "/pay")])
        self.assertTrue(all(b.disabled for b in self.buttons))

    def test_question_button(self) -> None:
        _click(self.buttons[2])
        self.assertEqual(self.submitted, [("Ask", "What is it?")])
        self.assertTrue(all(b.disabled for b in self.buttons))

    def test_url_button_opens_without_submitting(self) -> None:
        _click(self.buttons[1])
        self.assertEqual(self.opened, ["https://example.com"])
        self.assertEqual(self.submitted, [])
        self.assertFalse(any(b.disabled for b in self.buttons))

    def test_no_duplicate_submission(self) -> None:
        _click(self.buttons[0])
        self.assertFalse(_click(self.buttons[0]))
        self.assertFalse(_click(self.buttons[2]))
        self.assertEqual(len(self.submitted), 1)

    def test_payload_takes_precedence(self) -> None:
        renderer, _, submitted, opened = _make()
        root = renderer.render({"sender": "bot", "buttons": [
            {"title": "Both", "payload": "/p", "url": "https://x"},
        ]})
        _click(root.children[0].children[0])
        self.assertEqual(submitted, [("Both", "/p")])
        self.assertEqual(opened, [])

    def test_default_style_from_global_messages(self) -> None:
        self.assertEqual(self.buttons[0].style,
                         {"backgroundColor": "#btn", "color": "#btntext"})

    def test_button_color_and_message_override(self) -> None:
        renderer, *_ = _make()
        root = renderer.render({
            "sender": "bot",
            "buttons": [{"title": "C", "payload": "/c", "button_color": "#abc"}],
            "style": {"buttons": {"button": {"color": "black"}}},
        })
        style = root.children[0].children[0].style
        self.assertEqual(style["backgroundColor"], "#abc")
        self.assertEqual(style["borderColor"], "#abc")
        self.assertEqual(style["color"], "black")


# -----------------------------------------------------------------------
# Rating
# -----------------------------------------------------------------------

class TestRating(unittest.TestCase):

    def setUp(self) -> None:
        self.renderer, self.context, self.submitted, _ = _make()
        root = self.renderer.render({"sender": "bot", "custom": {"rating": {"scale": 5}}})
        rating = root.children[0].children[0]
        self.title = rating.children[0]
        self.stars = rating.children[1].children

    def _star(self, value: int) -> Node:
        return next(s for s in self.stars if s.attrs["data-value"] == value)

    def test_stars_ordered_high_to_low(self) -> None:
        self.assertEqual([s.attrs["data-value"] for s in self.stars], [5, 4, 3, 2, 1])
        self.assertEqual(self.title.text, "Please rate:")

    def test_click_star_three(self) -> None:
        _click(self._star(3))
        self.assertEqual(self.submitted, [("Rated 3 stars", '/rate_service{"rating":3}')])
        selected = {s.attrs["data-value"] for s in self.stars if s.has_class("selected")}
        self.assertEqual(selected, {1, 2, 3})
        self.assertEqual(self._star(2).style["color"], "#theme")
        self.assertEqual(self._star(4).style["color"], "#btn")

    def test_reselect_lower(self) -> None:
        _click(self._star(4))
        _click(self._star(2))
        selected = {s.attrs["data-value"] for s in self.stars if s.has_class("selected")}
        self.assertEqual(selected, {1, 2})
        self.assertEqual(len(self.submitted), 2)

    def test_hover_is_derived_and_cleared(self) -> None:
        self._star(4).dispatch(Event("mouseover"))
        hovered = {s.attrs["data-value"] for s in self.stars if s.has_class("hover")}
        self.assertEqual(hovered, {4, 5})
        self._star(4).dispatch(Event("mouseout"))
        self.assertFalse(any(s.has_class("hover") for s in self.stars))
        self.assertEqual(self.submitted, [])

    def test_rating_payload_helper(self) -> None:
        payload = rating_payload(4)
        self.assertTrue(payload.startswith("/rate_service"))
        self.assertEqual(json.loads(payload[len("/rate_service"):]), {"rating": 4})


# -----------------------------------------------------------------------
# Forms
# -----------------------------------------------------------------------

class TestForms(unittest.TestCase):

    FORM = {
        "title": "Contact",
        "submit_payload": "/submit_contact",
        "submit_button_text": "Send it",
        "fields": [
            {"field_name": "email", "label": "Email", "type": "email", "required": True},
            {"field_name": "topic", "type": "select", "options": ["Sales", "Support"]},
            {"field_name": "note", "type": "textarea"},
        ],
    }

    def setUp(self) -> None:
        self.renderer, _, self.submitted, _ = _make()
        root = self.renderer.render({"sender": "bot", "custom": {"forms": self.FORM}})
        self.container = root.children[0].children[0]
        self.form = self.container.find("chatbot-form")

    def _control(self, tag: str) -> Node:
        return next(n for n in self.form.walk() if n.tag == tag)

    def test_structure(self) -> None:
        self.assertEqual(self.container.find("chatbot-form-title").text, "Contact")
        email = self._control("input")
        self.assertEqual(email.attrs["type"], "email")
        self.assertTrue(email.attrs["required"])
        self.assertEqual(email.style["backgroundColor"], "#inbg")
        select = self._control("select")
        self.assertEqual([o.text for o in select.children], ["Sales", "Support"])
        self.assertEqual(self.container.find("chatbot-form-submit-button").text, "Send it")

    def test_required_field_blocks_submission(self) -> None:
        self.form.dispatch(Event("submit"))
        self.assertEqual(self.submitted, [])
        self.assertTrue(self._control("input").has_class("invalid"))
        self.assertFalse(self.form.disabled)

    def test_whitespace_does_not_satisfy_required(self) -> None:
        self.form.dispatch(Event("submit", values={"email": "   "}))
        self.assertEqual(self.submitted, [])

    def test_submit_with_input_events(self) -> None:
        self._control("input").dispatch(Event("input", value="a@b.c"))
        self._control("textarea").dispatch(Event("input", value="hi"))
        button = self.container.find("chatbot-form-submit-button")
        button.dispatch(Event("click"))

        self.assertEqual(len(self.submitted), 1)
        text, payload = self.submitted[0]
        self.assertEqual(text, "Submitted form: email: a@b.c, topic: Sales, note: hi")
        self.assertEqual(
            payload, '/submit_contact{"email":"a@b.c","topic":"Sales","note":"hi"}',
        )

    def test_disabled_after_one_submission(self) -> None:
        self.form.dispatch(Event("submit", values={"email": "x@y.z", "topic": "Support"}))
        self.form.dispatch(Event("submit", values={"email": "again@y.z"}))
        self.assertEqual(len(self.submitted), 1)
        self.assertIn('"topic":"Support"', self.submitted[0][1])
        self.assertTrue(self.form.disabled)
        self.assertTrue(self._control("input").disabled)

    def test_form_without_payload_skipped(self) -> None:
        renderer, *_ = _make()
        root = renderer.render({"sender": "bot", "text": "t",
                                "custom": {"forms": {"fields": [{"field_name": "a"}]}}})
        self.assertEqual(len(root.children), 1)

    def test_form_payload_helper(self) -> None:
        self.assertEqual(form_payload("/p", {"a": "1", "b": "é"}), '/p{"a":"1","b":"é"}')


# -----------------------------------------------------------------------
# Media, carousel and other custom payloads
# -----------------------------------------------------------------------

class TestMediaAndCustom(unittest.TestCase):

    def setUp(self) -> None:
        self.renderer, self.context, self.submitted, self.opened = _make()

    def test_youtube_ids(self) -> None:
        self.assertEqual(youtube_id("https://www.youtube.com/watch?v=abc123&t=5"), "abc123")
        self.assertEqual(youtube_id("https://youtu.be/xyz789?si=1"), "xyz789")
        self.assertIsNone(youtube_id("https://cdn.example/v.mp4"))

    def test_youtube_renders_iframe(self) -> None:
        root = self.renderer.render({"sender": "bot",
                                     "video": {"url": "https://youtu.be/xyz789"}})
        iframe = root.children[0]
        self.assertEqual(iframe.tag, "iframe")
        self.assertEqual(iframe.attrs["src"], "https://www.youtube.com/embed/xyz789?autoplay=0")

    def test_direct_video_autoplay_muted(self) -> None:
        root = self.renderer.render({"sender": "bot", "video": {
            "url": "https://cdn.example/v.mp4", "autoplay": True}})
        video = root.children[0]
        self.assertEqual(video.tag, "video")
        self.assertTrue(video.attrs["muted"])
        self.assertTrue(video.attrs["autoplay"])
        self.assertEqual(video.style["maxWidth"], "250px")

    def test_carousel_card(self) -> None:
        root = self.renderer.render({"sender": "bot", "carousel": [{
            "title": "Shoe",
            "subtitle": "Red",
            "image_url": "https://cdn.example/shoe.png",
            "buttons": [{"title": "Buy", "payload": "/buy"}],
            "button_style": {"fontWeight": "bold"},
        }]})
        card = root.children[0].children[0]
        self.assertEqual(card.style, {"backgroundColor": "#bubble"})
        self.assertEqual(card.find("chatbot-carousel-card-title").style, {"color": "#bottext"})
        button = card.find("chatbot-button")
        self.assertEqual(button.style["fontWeight"], "bold")
        _click(button)
        self.assertEqual(self.submitted, [("Buy", "/buy")])

    def test_custom_style_tree_applies(self) -> None:
        root = self.renderer.render({"sender": "bot", "custom": {
            "table": {"headers": ["A", "B"], "rows": [[1, None]]},
            "style": {"table": {"header": {"color": "pink"}}},
        }})
        table = root.children[0].children[0]
        headers = [n for n in table.walk() if n.tag == "th"]
        self.assertEqual([h.text for h in headers], ["A", "B"])
        self.assertEqual(headers[0].style, {"backgroundColor": "#btn", "color": "pink"})
        cells = [n.text for n in table.walk() if n.tag == "td"]
        self.assertEqual(cells, ["1", ""])

    def test_faq_toggle(self) -> None:
        root = self.renderer.render({"sender": "bot", "custom": {
            "faq_list": [{"question": "Why?", "answer": "<b>Because</b>"}],
            "style": {"faq": {"expandedAnswer": {"display": "block"}}},
        }})
        item = root.find("chatbot-faq-item")
        question = item.find("chatbot-faq-question")
        answer = item.find("chatbot-faq-answer")
        self.assertEqual(answer.html, "<b>Because</b>")
        _click(question)
        self.assertTrue(item.has_class("expanded"))
        self.assertEqual(answer.style, {"display": "block"})
        _click(question)
        self.assertFalse(item.has_class("expanded"))
        self.assertEqual(answer.style, {})

    def test_locations(self) -> None:
        renderer, _, _, opened = _make({"style": STYLE, "features": {"mapsApiKey": "K"}})
        root = renderer.render({"sender": "bot", "custom": {"locations": [
            {"lat": 10.5, "lng": -3, "name": "Depot", "address": "1 Road"},
        ]}})
        card = root.find("chatbot-location-card")
        self.assertTrue(card.find("chatbot-location-map").attrs["src"].endswith("&key=K"))
        self.assertEqual(card.find("chatbot-location-address").text, "1 Road")
        link = card.find("chatbot-location-button")
        _click(link)
        self.assertEqual(opened, ["https://www.google.com/maps?q=10.5,-3"])

    def test_location_without_coordinates_skipped_alone(self) -> None:
        root = self.renderer.render({"sender": "bot", "custom": {"locations": [
            {"lat": 1, "lng": 2, "name": "HQ"},
            {"name": "Nowhere"},
            {"lat": 3, "name": "Half"},
        ]}})
        cards = root.find_all("chatbot-location-card")
        self.assertEqual(len(cards), 1)
        self.assertEqual(cards[0].find("chatbot-location-title").text, "HQ")

    def test_empty_custom_renders_nothing(self) -> None:
        root = self.renderer.render({"sender": "bot", "custom": {"unknown": 1}})
        self.assertEqual(root.children, [])


# -----------------------------------------------------------------------
# Restyle and HTML output
# -----------------------------------------------------------------------

class TestRestyle(unittest.TestCase):

    def test_restyle_follows_new_config(self) -> None:
        renderer, context, _, _ = _make()
        root = renderer.render({"sender": "bot", "buttons": [{"title": "A", "payload": "/a"}]})
        context.config.apply({"style": {"messages": {"buttonColor": "#new"}}})
        renderer.restyle(root)
        self.assertEqual(root.children[0].children[0].style, {"backgroundColor": "#new"})

    def test_to_html(self) -> None:
        renderer, *_ = _make({})
        root = renderer.render({"sender": "user", "text": "a & b", "image": "http://x/y.png"})
        html = root.to_html()
        self.assertTrue(html.startswith('<div class="chatbot-message user">'))
        self.assertIn("a &amp; b", html)
        self.assertIn('<img src="http://x/y.png" class="chatbot-image">', html)


if __name__ == "__main__":
    unittest.main()
