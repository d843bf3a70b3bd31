"""
Session identity and conversation history.

Keys on the persistence surface:

* ``chatbot_session_id``                 → the session id string
* ``chatbot_conversation_{session_id}``  → JSON list of messages

History is append-only.  The in-memory list is authoritative for the
lifetime of the process: a failed write is logged and the append stands.
"""

import logging
import uuid

from .errors import PersistenceError
from .storage import KeyValueStore, read_json, write_json

log = logging.getLogger("chatbot_widget")

SESSION_KEY = "chatbot_session_id"
CONVERSATION_KEY_PREFIX = "chatbot_conversation_"


def conversation_key(session_id: str) -> str:
    return f"{CONVERSATION_KEY_PREFIX}{session_id}"


def generate_session_id() -> str:
    """Random ``xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx`` identifier."""
    return str(uuid.uuid4())


class SessionStore:
    """Owns the session id and the ordered message history."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._session_id: str | None = None
        self._history: dict[str, list[dict]] = {}

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def get_or_create_session_id(self) -> str:
        """Return the persisted session id, creating one on first use."""
        if self._session_id:
            return self._session_id
        try:
            stored = self._store.get(SESSION_KEY)
        except PersistenceError as exc:
            log.warning("[SESSION] Could not read session id: %s", exc)
            stored = None

        if stored:
            self._session_id = stored
            log.debug("[SESSION] Resumed session %s", stored)
            return stored

        self._session_id = generate_session_id()
        log.info("[SESSION] Created session %s", self._session_id)
        try:
            self._store.set(SESSION_KEY, self._session_id)
        except PersistenceError as exc:
            log.warning("[SESSION] Could not persist session id: %s", exc)
        return self._session_id

    def load_history(self, session_id: str) -> list[dict]:
        """Return the persisted history, or ``[]`` if none or corrupt."""
        data = read_json(self._store, conversation_key(session_id))
        if not isinstance(data, list):
            if data is not None:
                log.warning("[SESSION] Ignoring non-list history for %s.",
                            session_id)
            data = []
        messages = [m for m in data if isinstance(m, dict)]
        if len(messages) != len(data):
            log.warning("[SESSION] Dropped %d malformed history entries.",
                        len(data) - len(messages))
        self._history[session_id] = messages
        return list(messages)

    def append(self, session_id: str, message: dict) -> None:
        """Append *message* and persist the full history."""
        if session_id not in self._history:
            self.load_history(session_id)
        messages = self._history[session_id]
        messages.append(message)
        try:
            write_json(self._store, conversation_key(session_id), messages)
        except PersistenceError as exc:
            log.warning("[SESSION] History write failed (%d messages kept "
                        "in memory): %s", len(messages), exc)
