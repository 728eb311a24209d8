"""
Application Configuration
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    database_url: Optional[str] = None

    # Redis & Job Queue
    redis_url: Optional[str] = None

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Worker Configuration
    worker_processes: int = 2
    worker_threads: int = 1

    # Matching Engine Configuration
    match_algorithm_version: str = "v2"  # Profile used when callers don't pick one
    match_min_score: float = 0.45  # Candidates below this are dropped
    match_max_matches: int = 10  # Top-K kept per target quote
    match_candidate_limit: int = 500  # Most recent prior quotes scanned per run

    # Price Recommendation
    price_confidence_high_threshold: float = 0.70  # At or above = HIGH label
    price_confidence_medium_threshold: float = 0.45  # At or above = MEDIUM, below = LOW

    # Ignore List (Ignored_Emails / Ignored_Services configuration keys)
    ignore_list_ttl_seconds: int = 300  # 5 minutes, same window as the config cache upstream

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
