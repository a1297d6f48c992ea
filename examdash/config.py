"""
ExamDash - Configuration
Every setting can be overridden with an EXAMDASH_* environment variable or a .env file
"""

from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Admin client settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "ExamDash Admin"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Backend API
    # ==========================================
    API_BASE_URL: str = "http://localhost:5000/api"
    AUTH_API_URL: str = "http://localhost:3000"
    HTTP_TIMEOUT: float = 10.0  # seconds, same as the dashboard's axios instances
    HEALTH_PATH: str = "/health"
    AUTH_TOKEN: Optional[str] = None

    # ==========================================
    # Offline storage
    # ==========================================
    DATA_DIR: str = str(Path.home() / ".examdash")
    OFFLINE_DATABASE_URL: str = ""  # Empty means sqlite file inside DATA_DIR
    OFFLINE_NAMESPACE: str = "default"
    OFFLINE_MAX_ENTRIES: int = 0  # 0 = unbounded
    CACHE_TTL_SECONDS: int = 300  # 5 minutes for cached GET responses
    DB_ECHO: bool = False

    # ==========================================
    # Sync
    # ==========================================
    SYNC_MAX_ATTEMPTS: int = 0  # 0 = retry forever, otherwise dead-letter after N failures
    CONNECTIVITY_POLL_INTERVAL: float = 15.0  # seconds

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        env_prefix = "EXAMDASH_"
        case_sensitive = True
        extra = "ignore"

    @field_validator("API_BASE_URL", "AUTH_API_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def database_url(self) -> str:
        """Get the offline database URL, defaulting to a file under DATA_DIR"""
        if self.OFFLINE_DATABASE_URL:
            return self.OFFLINE_DATABASE_URL
        return f"sqlite+aiosqlite:///{Path(self.DATA_DIR) / 'offline.db'}"

    @property
    def health_url(self) -> str:
        return f"{self.API_BASE_URL}{self.HEALTH_PATH}"

    def ensure_directories(self) -> None:
        """Create DATA_DIR and the log directory if they don't exist"""
        if not self.OFFLINE_DATABASE_URL:
            Path(self.DATA_DIR).mkdir(parents=True, exist_ok=True)
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)


# Create settings instance
settings = Settings()
