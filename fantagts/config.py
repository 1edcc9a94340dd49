from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Application
    app_name: str = "FantaGTS"
    debug: bool = False
    api_version: str = "v1"
    log_level: str = "INFO"
    frontend_url: Optional[str] = None

    # Storage
    database_url: str = "sqlite+aiosqlite:///./data/fantagts.db"

    # Game rules
    initial_credits: int = 2000
    max_participants: int = 30

    # Auction engine
    sub_auction_pause_seconds: float = 3.0  # lets clients render results
    resolution_strategy: str = "exclusive"  # 'exclusive' or 'shared_premium'
    shared_premium: float = 0.10
    tie_break_seed: Optional[int] = None

    # Push notifications
    push_enabled: bool = False
    push_timeout_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
