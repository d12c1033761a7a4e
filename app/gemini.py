from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from chat.core.errors import (
    BadStatusError,
    ConfigurationError,
    MalformedPayloadError,
    NetworkError,
)
from config.settings import Settings


logger = logging.getLogger("geminichat.gemini")


def build_payload(message: str, settings: Settings) -> Dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": message}]}],
        "safetySettings": [
            {
                "category": "HARM_CATEGORY_HARASSMENT",
                "threshold": settings.safety_threshold,
            }
        ],
        "generationConfig": {
            "temperature": settings.temperature,
            "topK": settings.top_k,
            "topP": settings.top_p,
            "maxOutputTokens": settings.max_output_tokens,
        },
    }


def extract_text(data: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a response body.

    Raises ``MalformedPayloadError`` when the shape is wrong or the text is
    empty once stripped.
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not isinstance(text, str) or not text:
        logger.error("Invalid API response structure: %s", str(data)[:500])
        raise MalformedPayloadError(
            "Invalid API response structure",
            details="The AI response was not in the expected format",
        )
    text = text.strip()
    if not text:
        raise MalformedPayloadError(
            "Empty response from AI", details="The AI returned an empty response"
        )
    return text


class GeminiClient:
    """Blocking client for the ``generateContent`` endpoint.

    The key goes in the ``x-goog-api-key`` header so it never shows up in
    request URLs or httpx's request log lines.
    """

    def __init__(self, settings: Settings, *, http_client: Optional[httpx.Client] = None) -> None:
        if not settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set in environment or .env")
        self.settings = settings
        self.endpoint = (
            f"{settings.gemini_api_base.rstrip('/')}/models/"
            f"{settings.gemini_model}:generateContent"
        )
        self._client = http_client or httpx.Client(timeout=settings.upstream_timeout)

    def generate(self, message: str) -> str:
        payload = build_payload(message, self.settings)
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.settings.gemini_api_key or "",
        }
        try:
            response = self._client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Gemini API call failed: {exc}") from exc

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            data = None

        if not response.is_success:
            details = "Unknown error"
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                details = data["error"].get("message") or details
            logger.error("Gemini API error (%s): %s", response.status_code, details)
            raise BadStatusError(
                "Failed to get AI response",
                status_code=response.status_code,
                details=details,
            )

        logger.info("Received response from Gemini (model=%s)", self.settings.gemini_model)
        return extract_text(data)

    def close(self) -> None:
        self._client.close()
