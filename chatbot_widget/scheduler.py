"""
Periodic, cancellable configuration refresh.

The scheduler owns a single ``loop.call_later`` handle.  ``start`` always
stops the previous timer first, so at most one timer is active.  Each
tick runs the refresh coroutine and reschedules itself afterwards, even
when the refresh failed.  A generation nonce ties every tick to the
``start`` that created it: after ``stop`` (or a new ``start``) an
in-flight tick finishes its network call but never reschedules.
"""

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger("chatbot_widget")


class AutoRefreshScheduler:

    def __init__(self, refresh: Callable[[], Awaitable[object]]) -> None:
        self._refresh = refresh
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._interval: float = 0.0
        self._nonce = 0

    @property
    def running(self) -> bool:
        return self._handle is not None or (
            self._task is not None and not self._task.done()
        )

    def start(self, interval_ms: int) -> None:
        """Tick every *interval_ms* milliseconds until :meth:`stop`.

        Must be called from inside the running event loop.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}")
        self.stop()
        self._interval = interval_ms / 1000
        self._nonce += 1
        self._schedule(self._nonce)
        log.info("[REFRESH] Auto-refresh every %d ms.", interval_ms)

    def stop(self) -> None:
        """Cancel the pending tick.  An in-flight refresh is not aborted."""
        self._nonce += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _schedule(self, nonce: int) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._fire, nonce)

    def _fire(self, nonce: int) -> None:
        self._handle = None
        if nonce != self._nonce:
            return
        self._task = asyncio.get_running_loop().create_task(self._tick(nonce))

    async def _tick(self, nonce: int) -> None:
        try:
            await self._refresh()
        except Exception as exc:  # noqa: BLE001
            log.warning("[REFRESH] Refresh tick failed: %s: %s",
                        type(exc).__name__, exc)
        if nonce == self._nonce:
            self._schedule(nonce)
