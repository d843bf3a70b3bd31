"""
Chatbot widget console host.

Run with:
    python main.py --config '{"botUrl": "http://localhost:5005/webhooks/rest/webhook"}'

The embed-time configuration is taken from ``--config`` or, failing that,
the ``CHATBOT_CONFIG`` environment variable.  Type ``/quit`` to exit.
"""

import argparse
import asyncio
import logging
import os
import sys
import webbrowser

# Require Python 3.10+ for the union-type hints used throughout the package.
if sys.version_info < (3, 10):
    sys.exit(
        "Python 3.10 or later is required.\n"
        f"You are running Python {sys.version_info.major}.{sys.version_info.minor}."
    )

# ---------------------------------------------------------------------------
# Logging: set CHATBOT_DEBUG for debug output.
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if os.environ.get("CHATBOT_DEBUG") else logging.INFO,
    format="%(asctime)s  %(message)s",
    datefmt="%H:%M:%S",
)

from chatbot_widget.storage import open_store  # noqa: E402
from chatbot_widget.widget import ChatbotWidget  # noqa: E402


def _print_new(widget: ChatbotWidget, shown: int) -> int:
    view = widget.context.view
    for node in view[shown:]:
        who = widget.context.chrome.title if "bot" in node.classes else "You"
        print(f"{who}:\n{node.to_text(1)}\n")
    return len(view)


async def _run(widget: ChatbotWidget) -> None:
    if not await widget.init():
        print("Chatbot is disabled by its appearance configuration.")
        return
    chrome = widget.context.chrome
    animation = widget.context.config.animation
    print(f"── {chrome.title} ──  ({chrome.position}, {animation.get('type', 'none')})")
    shown = _print_new(widget, 0)

    try:
        while True:
            line = await asyncio.to_thread(input, f"{chrome.placeholder} [{chrome.send_label}] > ")
            if line.strip() == "/quit":
                break
            chrome.input_value = line
            await widget.send()
            await widget.controller.drain()
            shown = _print_new(widget, shown)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        widget.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Chatbot widget console host")
    parser.add_argument("--config", default=os.environ.get("CHATBOT_CONFIG"),
                        help="embed-time configuration as a JSON object")
    parser.add_argument("--memory", action="store_true",
                        help="keep the session in memory instead of Asset/")
    args = parser.parse_args()

    store = open_store(memory=args.memory)
    widget = ChatbotWidget(store, embed_config=args.config,
                           open_url=lambda url: webbrowser.open(url, new=2))
    asyncio.run(_run(widget))


if __name__ == "__main__":
    main()
