"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str

    # Redis (offline backup cache)
    REDIS_URL: str = "redis://redis:6379/0"
    OFFLINE_BACKUP_ENABLED: bool = True
    BACKUP_KEY_PREFIX: str = "onboarding_backup_"
    BACKUP_TTL: int = 7 * 24 * 3600  # 7 days
    BACKUP_VERSION: str = "1.0"

    # Application
    APP_NAME: str = "Onboarding Progress Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Synchronization
    SYNC_CONFLICT_TOLERANCE_SECONDS: int = 30

    # Blocker heuristics
    DEFAULT_STEP_ESTIMATED_MINUTES: int = 10
    SLOW_PROGRESS_MINUTES: float = 15.0
    ABANDONED_SESSION_HOURS: float = 24.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
