from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. The proxy reads the
    ``GEMINI_*``/``MODEL_*`` values, the chat client reads the rest.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or None
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
        self.gemini_api_base: str = os.getenv(
            "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
        )
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.7"))
        self.top_k: int = int(os.getenv("MODEL_TOP_K", "40"))
        self.top_p: float = float(os.getenv("MODEL_TOP_P", "0.95"))
        self.max_output_tokens: int = int(os.getenv("MODEL_MAX_OUTPUT_TOKENS", "1024"))
        self.safety_threshold: str = os.getenv("SAFETY_THRESHOLD", "BLOCK_NONE")
        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))

        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "5000"))
        self.frontend_dir: Optional[str] = os.getenv("FRONTEND_DIR") or None
        self.cors_origins: List[str] = _env_list("CORS_ORIGINS", "*")

        # Chat client
        self.chat_api_url: str = os.getenv("CHAT_API_URL", "http://localhost:5000")
        self.max_message_length: int = int(os.getenv("MAX_MESSAGE_LENGTH", "1000"))
        self.message_timeout: float = float(os.getenv("MESSAGE_TIMEOUT", "30"))
        self.history_limit: int = int(os.getenv("MESSAGE_HISTORY_LIMIT", "100"))
        self.max_file_size: int = int(os.getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024)))
        self.error_display_seconds: float = float(os.getenv("ERROR_DISPLAY_SECONDS", "5"))
        self.storage_path: Path = Path(
            os.getenv("CHAT_STORAGE_PATH", "~/.gemini_chat/storage.json")
        ).expanduser()

    @property
    def api_key_status(self) -> str:
        return "configured" if self.gemini_api_key else "missing"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
