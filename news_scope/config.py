"""
Central configuration loaded from environment variables with sensible defaults.
All secrets come from env vars; no hardcoded credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = os.getenv("PG_HOST", "localhost")
    port: int = int(os.getenv("PG_PORT", "5432"))
    user: str = os.getenv("PG_USER", "newsscope")
    password: str = os.getenv("PG_PASSWORD", "newsscope")
    database: str = os.getenv("PG_DATABASE", "news_scope")
    min_pool_size: int = int(os.getenv("PG_POOL_MIN", "2"))
    max_pool_size: int = int(os.getenv("PG_POOL_MAX", "10"))

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class SearchConfig:
    backend: str = os.getenv("SEARCH_BACKEND", "postgres")  # postgres | gazetteer
    gazetteer_seed: str = os.getenv("GAZETTEER_SEED", "data/places.sample.jsonl")
    # Candidates requested per token / bigram
    limit: int = int(os.getenv("SEARCH_LIMIT", "10"))
    # Hard cap applied by the search services
    max_limit: int = int(os.getenv("SEARCH_MAX_LIMIT", "100"))


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))
    max_query_length: int = int(os.getenv("API_MAX_QUERY_LENGTH", "200"))


@dataclass(frozen=True)
class Settings:
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
