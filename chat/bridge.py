from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from chat.core.errors import (
    BadStatusError,
    MalformedPayloadError,
    MessageTooLongError,
    NetworkError,
)


logger = logging.getLogger("geminichat.bridge")


def _error_details(response: httpx.Response) -> str:
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        details = body.get("details") or body.get("error") or body.get("message")
        if details:
            return str(details)
    return response.reason_phrase


class RemoteBridge:
    """Request/response transport to the proxy's ``/api/chat`` endpoint.

    One call, one answer: no retries, no cancellation. Every failure is
    raised as a ``ChatError`` subclass for the session to turn into a
    notice.
    """

    def __init__(
        self,
        base_url: str,
        *,
        max_message_length: int = 1000,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_message_length = max_message_length
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def check(self, text: str) -> None:
        if len(text) > self.max_message_length:
            raise MessageTooLongError(len(text), self.max_message_length)

    async def send(self, text: str) -> str:
        self.check(text)
        try:
            response = await self._client.post(
                f"{self.base_url}/api/chat", json={"message": text}
            )
        except httpx.HTTPError as exc:
            logger.warning("Chat request failed: %s", exc)
            raise NetworkError(f"Chat request failed: {exc}") from exc

        if not response.is_success:
            details = _error_details(response)
            logger.warning("Chat request returned %s: %s", response.status_code, details)
            raise BadStatusError(
                "Failed to get response from server",
                status_code=response.status_code,
                details=details,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise MalformedPayloadError(
                "Invalid response format", details="Response body is not JSON"
            ) from exc
        reply = data.get("message") if isinstance(data, dict) else None
        if not isinstance(reply, str) or not reply.strip():
            raise MalformedPayloadError(
                "Invalid response format", details="Response has no message text"
            )
        return reply

    async def health(self) -> Dict[str, Any]:
        try:
            response = await self._client.get(f"{self.base_url}/api/health")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise NetworkError(f"Health check failed: {exc}") from exc
        except (json.JSONDecodeError, ValueError) as exc:
            raise MalformedPayloadError(
                "Invalid health response", details="Response body is not JSON"
            ) from exc
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
