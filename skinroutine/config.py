from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    """Application settings"""
    # Storage
    database_url: str = "sqlite+aiosqlite:///./catalog.db"
    catalog_cache_seconds: int = 300

    # Budget
    default_budget: int = 100
    budget_hard_cap: int = 200
    budget_floor_ratio: float = 0.55
    treatment_budget_share: float = 0.20

    # Scoring
    relevance_threshold: float = 2.0

    # Diversity history
    diversity_protected_count: int = 3
    diversity_history_max: int = 20
    diversity_history_keep: int = 15

    log_level: str = "INFO"

    class Config:
        env_file = '.env'


@lru_cache
def get_settings() -> Settings:
    return Settings()
