"""
Canonical data shapes shared by the stores, the renderer and the session.

- Message: one immutable chat turn (user, assistant or system).
- Attachment: a file picked by the user, read but not uploaded.
- DEFAULT_PREFERENCES: the fixed key set every preferences blob must carry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


Scalar = Union[str, int, float, bool]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


# Persisted history uses the front-end's message types, not role names.
_ROLE_TO_TYPE = {Role.USER: "user", Role.ASSISTANT: "ai"}
_TYPE_TO_ROLE = {"user": Role.USER, "ai": Role.ASSISTANT, "assistant": Role.ASSISTANT}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    role: Role
    text: str
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def persistable(self) -> bool:
        return self.role is not Role.SYSTEM and bool(self.text.strip())

    def to_record(self) -> Dict[str, str]:
        if self.role is Role.SYSTEM:
            raise ValueError("system messages are never persisted")
        return {
            "type": _ROLE_TO_TYPE[self.role],
            "message": self.text,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        """Rebuild a message from its persisted form.

        Raises ``ValueError`` (or ``KeyError``/``TypeError``) for records
        that do not look like something ``to_record`` produced.
        """
        role = _TYPE_TO_ROLE[record["type"]]
        text = record["message"]
        if not isinstance(text, str) or not text.strip():
            raise ValueError("persisted message has no text")
        stamp = record["timestamp"]
        # Browser clients write toISOString(), which ends in "Z".
        if isinstance(stamp, str) and stamp.endswith("Z"):
            stamp = stamp[:-1] + "+00:00"
        created_at = datetime.fromisoformat(stamp)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(role=role, text=text, created_at=created_at)


@dataclass(frozen=True)
class Attachment:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


DEFAULT_PREFERENCES: Dict[str, Scalar] = {
    "theme": "light",
    "font_size": 16,
    "language": "en",
    "voice_output": False,
    "save_history": True,
    "markdown_enabled": True,
    "typing_indicator": True,
    "timestamp_format": "24h",
    "auto_scroll": True,
}

THEMES: Dict[str, Dict[str, str]] = {
    "light": {
        "primary": "#007bff",
        "background": "#ffffff",
        "text": "#212529",
        "secondaryText": "#6c757d",
        "border": "#dee2e6",
        "hover": "#f8f9fa",
    },
    "dark": {
        "primary": "#0d6efd",
        "background": "#212529",
        "text": "#f8f9fa",
        "secondaryText": "#adb5bd",
        "border": "#495057",
        "hover": "#343a40",
    },
}

SUPPORTED_FILE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
        "text/plain",
    }
)


def timestamp_label(created_at: datetime, fmt: Optional[Scalar] = "24h") -> str:
    local = created_at.astimezone()
    if fmt == "12h":
        return local.strftime("%I:%M:%S %p")
    return local.strftime("%H:%M:%S")
