"""
Message data model.

Messages stay JSON-shaped dicts end to end (they are persisted verbatim
and arrive verbatim from the backend).  The TypedDicts below document the
recognised shape; :func:`message_variants` and :func:`custom_variants`
turn a message into its tagged variant set in the fixed render order.
"""

from typing import Any, TypedDict

SENDER_USER = "user"
SENDER_BOT = "bot"

#: Render order for top-level message fields.
MESSAGE_FIELDS: tuple[str, ...] = (
    "text", "buttons", "image", "video", "carousel", "custom",
)

#: Render order for keys of a ``custom`` payload.
CUSTOM_FIELDS: tuple[str, ...] = (
    "locations", "faq_list", "table", "rating", "forms", "video",
)


class Button(TypedDict, total=False):
    title: str
    payload: str
    url: str
    question: str
    button_color: str


class Video(TypedDict, total=False):
    url: str
    autoplay: bool


class CarouselCard(TypedDict, total=False):
    image_url: str
    title: str
    subtitle: str
    buttons: list[Button]
    button_style: dict[str, Any]


class FormField(TypedDict, total=False):
    field_name: str
    label: str
    type: str          # "text", "select", "textarea", "email", ...
    options: list[str]
    placeholder: str
    required: bool


class Form(TypedDict, total=False):
    title: str
    fields: list[FormField]
    submit_payload: str
    submit_button_text: str


class Rating(TypedDict, total=False):
    scale: int
    title: str


class Table(TypedDict, total=False):
    headers: list[str]
    rows: list[list[Any]]


class Custom(TypedDict, total=False):
    locations: list[dict[str, Any]]
    faq_list: list[dict[str, Any]]
    table: Table
    rating: Rating
    forms: Form
    video: Video
    style: dict[str, Any]


class Message(TypedDict, total=False):
    sender: str
    text: str
    buttons: list[Button]
    image: str
    video: Video
    carousel: list[CarouselCard]
    custom: Custom
    style: dict[str, Any]


def _populated(value) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, dict)) and not value:
        return False
    return True


def message_variants(message: dict) -> list[tuple[str, Any]]:
    """Return ``(field, value)`` for every populated message field, in order."""
    return [
        (name, message[name])
        for name in MESSAGE_FIELDS
        if _populated(message.get(name))
    ]


def custom_variants(custom: dict) -> list[tuple[str, Any]]:
    """Return ``(key, value)`` for every populated custom-payload key, in order."""
    return [
        (name, custom[name])
        for name in CUSTOM_FIELDS
        if _populated(custom.get(name))
    ]


def user_message(text: str) -> Message:
    return {"sender": SENDER_USER, "text": text}


def bot_message(data: dict) -> Message:
    """Tag a backend response object as a bot message."""
    return {**data, "sender": SENDER_BOT}
