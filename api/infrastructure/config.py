# api/infrastructure/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    duckdb_path: str
    storage_dir: str
    ai_gateway_url: str
    ai_api_key: str
    ai_model: str
    ai_timeout_seconds: float
    rate_limit_per_minute: int
    debug: bool

    @property
    def ia_habilitada(self) -> bool:
        return bool(self.ai_gateway_url and self.ai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        duckdb_path=os.environ.get("DUCKDB_PATH", ":memory:"),
        storage_dir=os.environ.get("STORAGE_DIR", "storage"),
        ai_gateway_url=os.environ.get("AI_GATEWAY_URL", ""),
        ai_api_key=os.environ.get("AI_API_KEY", ""),
        ai_model=os.environ.get("AI_MODEL", "google/gemini-2.5-flash"),
        ai_timeout_seconds=float(os.environ.get("AI_TIMEOUT_SECONDS", "30")),
        rate_limit_per_minute=int(os.environ.get("API_RATE_LIMIT_PER_MINUTE", "60")),
        debug=os.environ.get("API_DEBUG", "false").lower() == "true",
    )
