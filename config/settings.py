from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.cookies_file: str = os.getenv("COOKIES_FILE", "cookies.yaml")
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
        self.top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))
        self.system_prompt: Optional[str] = os.getenv("SYSTEM_PROMPT") or None
        self.history_turns: int = int(os.getenv("HISTORY_TURNS", "10"))
        self.progress_timeout: float = float(os.getenv("PROGRESS_TIMEOUT_SECONDS", "60"))
        self.settled_ttl: float = float(os.getenv("SETTLED_TTL_SECONDS", "600"))
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
