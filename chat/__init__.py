"""Chat session library: stores, renderer, transport bridge and controller."""

from .bridge import RemoteBridge
from .history import HistoryStore
from .preferences import PreferenceStore
from .renderer import MessageRenderer, render
from .session import SessionController, build_session
from .surface import HtmlSurface

__all__ = [
    "RemoteBridge",
    "HistoryStore",
    "PreferenceStore",
    "MessageRenderer",
    "render",
    "SessionController",
    "build_session",
    "HtmlSurface",
]
