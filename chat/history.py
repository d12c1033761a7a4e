from __future__ import annotations

import json
import logging
from typing import Callable, List

from chat.core.interfaces import KeyValueStore
from chat.core.models import Message


logger = logging.getLogger("geminichat.history")

STORAGE_KEY = "chat_history"
DEFAULT_LIMIT = 100


class HistoryStore:
    """Ordered message history persisted as one JSON list.

    ``retain`` is consulted on every call so toggling the ``save_history``
    preference takes effect immediately.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        limit: int = DEFAULT_LIMIT,
        retain: Callable[[], bool] = lambda: True,
    ) -> None:
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self._store = store
        self.limit = limit
        self._retain = retain

    @property
    def enabled(self) -> bool:
        return bool(self._retain())

    def load(self) -> List[Message]:
        if not self.enabled:
            return []
        messages: List[Message] = []
        for record in self._read_records():
            try:
                messages.append(Message.from_record(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable history record: %s", exc)
        return messages[-self.limit:]

    def append(self, message: Message) -> bool:
        if not self.enabled or not message.persistable:
            return False
        records = self._read_records()
        records.append(message.to_record())
        self._store.set(STORAGE_KEY, json.dumps(records[-self.limit:]))
        return True

    def clear(self) -> None:
        self._store.remove(STORAGE_KEY)

    def _read_records(self) -> List[dict]:
        raw = self._store.get(STORAGE_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored history is not valid JSON; ignoring it")
            return []
        if not isinstance(data, list):
            logger.warning("Stored history is not a list; ignoring it")
            return []
        return [item for item in data if isinstance(item, dict)]
