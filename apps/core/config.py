from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the subject search service."""

    # Database - SQLite file by default, PostgreSQL supported
    database_url: str = "sqlite:///./database.sqlite"

    # Environment
    environment: str = "development"
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 3000

    # Paging
    search_default_page: int = 1
    search_default_page_size: int = 10
    search_max_page_size: Optional[int] = None  # no cap unless set

    # Fuzzy thresholds (all compared with strict ">")
    search_city_match_threshold: float = 0.7
    search_category_match_threshold: float = 0.0
    search_fallback_score_threshold: float = 0.4
    fuzzy_scorer: str = "ratio"

    # Lexicon overrides / config cache
    lexicon_path: str = "config/lexicon.yml"
    config_cache_ttl_s: int = 300

    # Transport guards
    rate_limit_window_s: int = 15 * 60
    rate_limit_max_requests: int = 100
    request_timeout_s: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
