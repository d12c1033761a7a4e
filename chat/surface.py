"""
In-memory rendering surface that produces the chat page markup.

It is the DOM stand-in: message bubbles, the typing indicator, error
banners that expire, plus the theme and font size preferences. The
session only talks to it through the ``ChatView`` port.
"""

from __future__ import annotations

import html
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from chat.core.models import DEFAULT_PREFERENCES, THEMES, Message, Role, timestamp_label


_ROLE_CLASS = {Role.USER: "user", Role.ASSISTANT: "ai", Role.SYSTEM: "system"}


@dataclass
class RenderedMessage:
    message: Message
    html: str
    timestamp: str

    @property
    def css_class(self) -> str:
        return f"message {_ROLE_CLASS[self.message.role]}-message"

    def to_html(self) -> str:
        return (
            f'<div class="{self.css_class}">'
            f'<div class="message-content"><p>{self.html}</p>'
            f'<div class="message-timestamp">{self.timestamp}</div></div></div>'
        )


@dataclass
class ErrorBanner:
    text: str
    expires_at: float


class HtmlSurface:
    def __init__(
        self,
        *,
        error_display_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.error_display_seconds = error_display_seconds
        self._clock = clock
        self.messages: List[RenderedMessage] = []
        self.typing = False
        self.input_text = ""
        self.preferences: Dict[str, Any] = dict(DEFAULT_PREFERENCES)
        self._errors: List[ErrorBanner] = []

    @property
    def theme(self) -> str:
        return str(self.preferences.get("theme", "light"))

    @property
    def palette(self) -> Dict[str, str]:
        return THEMES.get(self.theme, THEMES["light"])

    @property
    def errors(self) -> List[str]:
        now = self._clock()
        self._errors = [banner for banner in self._errors if banner.expires_at > now]
        return [banner.text for banner in self._errors]

    def apply_preferences(self, preferences: Mapping[str, Any]) -> None:
        self.preferences = dict(preferences)

    def add_message(self, message: Message, html: str) -> None:
        label = timestamp_label(message.created_at, self.preferences.get("timestamp_format"))
        self.messages.append(RenderedMessage(message, html, label))

    def show_typing(self) -> None:
        self.typing = True

    def hide_typing(self) -> None:
        self.typing = False

    def show_error(self, text: str, *, seconds: Optional[float] = None) -> None:
        ttl = self.error_display_seconds if seconds is None else seconds
        self._errors.append(ErrorBanner(text, self._clock() + ttl))

    def clear_messages(self) -> None:
        self.messages.clear()
        self.typing = False

    def set_input(self, text: str) -> None:
        self.input_text = text

    def to_html(self) -> str:
        parts = [rendered.to_html() for rendered in self.messages]
        if self.typing:
            parts.append(
                '<div class="message ai-message typing-indicator">'
                '<div class="dots"><span></span><span></span><span></span></div></div>'
            )
        parts.extend(
            f'<div class="error-message">{html.escape(text)}</div>' for text in self.errors
        )
        style = f"--base-font-size: {self.preferences.get('font_size', 16)}px"
        return (
            f'<div id="messages" class="{html.escape(self.theme)}" style="{style}">'
            + "".join(parts)
            + "</div>"
        )
