"""
Widget assembly and lifecycle.

Startup order
-------------
1. Parse the embed-time config (malformed JSON → defaults).
2. If ``appearanceApiUrl`` is set, ask it whether to show the widget and
   merge its ``initialConfig``.  A hidden widget stops here.
3. If ``configApiUrl`` is set, pull it once (failure is only logged).
4. Resume or create the session and replay the stored history.
5. Start auto-refresh when ``autoRefresh`` is true.

Each refresh tick pulls the config again, re-resolves the styles of the
rendered messages and updates the chrome text; history is not rebuilt.
"""

import asyncio
import logging

from .backend import BotClient
from .config import ConfigResolver
from .context import Chrome, WidgetContext
from .controller import ConversationController
from .errors import ConfigFetchError
from .scheduler import AutoRefreshScheduler
from .session_store import SessionStore
from .storage import KeyValueStore

log = logging.getLogger("chatbot_widget")

DEFAULT_REFRESH_INTERVAL_MS = 60_000


class ChatbotWidget:
    """One widget instance; owns its context, controller and scheduler."""

    def __init__(
        self,
        store: KeyValueStore,
        embed_config: str | None = None,
        client: BotClient | None = None,
        open_url=None,
    ) -> None:
        self.context = WidgetContext(
            config=ConfigResolver.from_embed(embed_config),
            session=SessionStore(store),
            chrome=Chrome(),
        )
        self.controller = ConversationController(
            self.context, client=client, open_url=open_url,
        )
        self.scheduler = AutoRefreshScheduler(self.refresh)
        self.visible = False
        self._store = store

    @property
    def config(self) -> dict:
        return self.context.config.effective

    async def init(self) -> bool:
        """Bootstrap the widget.  Returns whether it is shown."""
        resolver = self.context.config
        if self.config.get("appearanceApiUrl"):
            shown = await asyncio.to_thread(resolver.fetch_appearance)
            if not shown:
                return False
        else:
            log.info("[APP] No appearance API URL provided. "
                     "Displaying with embed config.")

        if self.config.get("configApiUrl"):
            try:
                await asyncio.to_thread(resolver.refresh)
            except ConfigFetchError as exc:
                log.warning("[APP] Initial config fetch failed: %s", exc)

        self.context.session.get_or_create_session_id()
        self.context.chrome.apply_config(self.config)
        self.controller.replay_history()
        self.visible = True

        if self.config.get("autoRefresh"):
            interval = self.config.get("autoRefreshInterval") or DEFAULT_REFRESH_INTERVAL_MS
            try:
                self.scheduler.start(int(interval))
            except (TypeError, ValueError) as exc:
                log.error("[APP] Invalid autoRefreshInterval %r: %s", interval, exc)
        return True

    async def refresh(self) -> dict:
        """One refresh pass: pull config, restyle, update chrome text.

        Raises :class:`ConfigFetchError` when the pull fails; the rendered
        view is left as it was.
        """
        config = await asyncio.to_thread(self.context.config.refresh)
        self.controller.restyle()
        self.context.chrome.apply_config(config)
        log.debug("[REFRESH] Applied refreshed config to %d rendered messages.",
                  len(self.context.view))
        return config

    async def send(self, text: str | None = None, payload: str | None = None) -> None:
        await self.controller.send(text, payload)

    def toggle(self) -> bool:
        return self.context.chrome.toggle()

    def close(self) -> None:
        self.scheduler.stop()
        self._store.close()
