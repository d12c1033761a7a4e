from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from chat.core.interfaces import ChatView, KeyValueStore, SpeechOutput
from chat.core.models import DEFAULT_PREFERENCES, Scalar


logger = logging.getLogger("geminichat.preferences")

STORAGE_KEY = "chatbot_settings"


class PreferenceStore:
    """Single preferences object persisted under ``chatbot_settings``.

    The store is also what pushes preferences onto the rendering surface,
    so every mutation (update, reset, import) refreshes the attached view.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        view: Optional[ChatView] = None,
        speech: Optional[SpeechOutput] = None,
    ) -> None:
        self._store = store
        self._view = view
        self._speech = speech
        self._current: Dict[str, Scalar] = dict(DEFAULT_PREFERENCES)

    def load(self) -> Dict[str, Scalar]:
        raw = self._store.get(STORAGE_KEY)
        self._current = dict(DEFAULT_PREFERENCES)
        if raw:
            try:
                saved = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Stored preferences are not valid JSON; using defaults")
                saved = None
            if isinstance(saved, dict):
                self._current.update(saved)
            elif saved is not None:
                logger.warning("Stored preferences are not an object; using defaults")
        self.apply()
        return self.as_dict()

    def update(
        self, partial: Optional[Mapping[str, Any]] = None, **changes: Any
    ) -> Dict[str, Scalar]:
        merged = dict(partial or {})
        merged.update(changes)
        self._current = {**self._current, **merged}
        self._save()
        self.apply()
        return self.as_dict()

    def reset(self) -> Dict[str, Scalar]:
        self._current = dict(DEFAULT_PREFERENCES)
        self._save()
        self.apply()
        return self.as_dict()

    def export(self) -> str:
        return json.dumps(self._current, indent=2, ensure_ascii=False)

    def import_(self, blob: str) -> bool:
        try:
            imported = json.loads(blob)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.error("Error importing settings: %s", exc)
            return False
        if not isinstance(imported, dict):
            logger.error("Error importing settings: expected a JSON object")
            return False
        missing = [key for key in DEFAULT_PREFERENCES if key not in imported]
        if missing:
            logger.error(
                "Invalid settings file: missing required settings %s", ", ".join(missing)
            )
            return False
        self.update(imported)
        return True

    def get(self, key: str, default: Any = None) -> Any:
        return self._current.get(key, default)

    def as_dict(self) -> Dict[str, Scalar]:
        return dict(self._current)

    def apply(self) -> None:
        if self._view is not None:
            self._view.apply_preferences(self.as_dict())
        if self._speech is not None and self._current.get("voice_output"):
            if self._speech.available:
                self._speech.select_voice(str(self._current.get("language", "en")))

    def _save(self) -> None:
        self._store.set(STORAGE_KEY, json.dumps(self._current))
