from __future__ import annotations

from typing import Optional


class ChatError(Exception):
    """Base class for every failure the chat client or proxy surfaces."""


class ValidationError(ChatError):
    """Input rejected locally, before anything leaves the process."""


class MessageTooLongError(ValidationError):
    def __init__(self, length: int, limit: int) -> None:
        super().__init__(
            f"Message is {length} characters long; the limit is {limit}."
        )
        self.length = length
        self.limit = limit


class AttachmentError(ValidationError):
    """Unsupported attachment type or oversized attachment."""


class NetworkError(ChatError):
    """Transport-level failure: connection refused, DNS, timeout."""


class UpstreamError(ChatError):
    """A peer answered, but not with a usable completion.

    ``str(exc)`` is the short error label, ``details`` the human readable
    explanation. Both end up in the proxy's ``{error, details}`` body.
    """

    def __init__(
        self, message: str, *, status_code: int = 500, details: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details or message


class BadStatusError(UpstreamError):
    pass


class MalformedPayloadError(UpstreamError):
    pass


class ConfigurationError(ChatError):
    """Fatal misconfiguration detected at startup."""
