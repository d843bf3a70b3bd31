"""
Conversation controller: the send/receive cycle.

``send`` shows the user's message immediately (rendered and persisted),
then posts it to the backend off the event loop.  Bot replies are
rendered and persisted in server order.  An empty reply or any failure
yields exactly one apology message; no error ever reaches the caller.
"""

import asyncio
import logging

from .backend import BotClient
from .context import WidgetContext
from .errors import BotAPIError
from .models import bot_message, user_message
from .render_tree import Node
from .renderer import MessageRenderer

log = logging.getLogger("chatbot_widget")

EMPTY_RESPONSE_TEXT = "Sorry, I didn't get a response from the bot."
CONNECTION_ERROR_TEXT = (
    "Sorry, I'm having trouble connecting right now. Please try again later."
)


class ConversationController:

    def __init__(
        self,
        context: WidgetContext,
        client: BotClient | None = None,
        open_url=None,
    ) -> None:
        self._context = context
        self._client = client or BotClient()
        self._renderer = MessageRenderer(
            context, submit=self.submit, open_url=open_url,
        )
        self._pending: set[asyncio.Task] = set()

    @property
    def renderer(self) -> MessageRenderer:
        return self._renderer

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def display_message(self, message: dict, save: bool = True) -> Node:
        """Render *message* into the view; persist it when *save* is set."""
        node = self._renderer.render(message)
        self._context.view.append(node)
        if save:
            session_id = self._context.session.get_or_create_session_id()
            self._context.session.append(session_id, message)
        return node

    def replay_history(self) -> int:
        """Render the persisted history without persisting it again."""
        session_id = self._context.session.get_or_create_session_id()
        history = self._context.session.load_history(session_id)
        for message in history:
            self.display_message(message, save=False)
        log.debug("[CHAT] Replayed %d messages for %s", len(history), session_id)
        return len(history)

    def restyle(self) -> None:
        """Re-resolve styles of everything already rendered."""
        for node in self._context.view:
            self._renderer.restyle(node)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def submit(self, text: str, payload: str | None = None) -> None:
        """Fire-and-forget :meth:`send`, used by rendered buttons and forms."""
        task = asyncio.get_running_loop().create_task(self.send(text, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every send started through :meth:`submit`."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def send(self, text: str | None = None, payload: str | None = None) -> None:
        """Send one user turn.  No-op when both *text* and *payload* are empty."""
        chrome = self._context.chrome
        text = (text or chrome.input_value).strip()
        if not text and not payload:
            return

        self.display_message(user_message(text))
        chrome.input_value = ""

        config = self._context.config.effective
        session_id = self._context.session.get_or_create_session_id()
        try:
            replies = await asyncio.to_thread(
                self._client.post_message,
                config["botUrl"], session_id, text, payload,
            )
        except BotAPIError as exc:
            log.error("[CHAT] Error communicating with bot backend: %s", exc)
            self.display_message(bot_message({"text": CONNECTION_ERROR_TEXT}))
            return
        except Exception as exc:  # noqa: BLE001
            log.error("[CHAT] Unexpected error while sending: %s: %s",
                      type(exc).__name__, exc, exc_info=True)
            self.display_message(bot_message({"text": CONNECTION_ERROR_TEXT}))
            return

        if not replies:
            self.display_message(bot_message({"text": EMPTY_RESPONSE_TEXT}))
            return
        for reply in replies:
            self.display_message(bot_message(reply))
