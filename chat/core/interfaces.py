"""
Ports for the collaborators the chat session talks to but does not own.

- KeyValueStore: string blobs under fixed keys (get/set/remove/clear).
- ChatView: the rendering surface the session drives.
- SpeechOutput / SpeechInput: capability-gated speech engines.
- ChatBackend: anything that turns a prompt into a completion.

Testing: swap in the in-memory store, HtmlSurface and small fakes.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol

from .models import Message


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class ChatView(Protocol):
    def apply_preferences(self, preferences: Mapping[str, Any]) -> None: ...

    def add_message(self, message: Message, html: str) -> None: ...

    def show_typing(self) -> None: ...

    def hide_typing(self) -> None: ...

    def show_error(self, text: str) -> None: ...

    def clear_messages(self) -> None: ...

    def set_input(self, text: str) -> None: ...


class SpeechOutput(Protocol):
    @property
    def available(self) -> bool: ...

    def select_voice(self, language: str) -> None: ...

    def speak(self, text: str, language: str) -> None: ...


class SpeechInput(Protocol):
    @property
    def available(self) -> bool: ...

    async def listen(self, language: str) -> str: ...


class ChatBackend(Protocol):
    async def send(self, text: str) -> str: ...

    def check(self, text: str) -> None: ...

    async def health(self) -> Dict[str, Any]: ...
