from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    # Backend: "appwrite" or "memory"
    BACKEND: str = "appwrite"

    # Appwrite
    APPWRITE_ENDPOINT: str = "https://cloud.appwrite.io/v1"
    APPWRITE_PROJECT_ID: str | None = None
    APPWRITE_API_KEY: str | None = None  # do not commit
    APPWRITE_DATABASE_ID: str = "68fb5845001d32f31656"

    # Collections
    COL_TIMESHEETS: str = "pms_timesheets"
    COL_ENTRIES: str = "pms_timesheet_entries"
    COL_USERS: str = "pms_users"
    COL_PROJECTS: str = "pms_projects"

    # Access resolution
    MEMBERSHIP_BATCH_SIZE: int = 10
    ACCESS_TIMEOUT_SECONDS: float = 5.0
    MANAGER_INDEX_ENABLED: bool = True
    MANAGER_INDEX_REFRESH_MINUTES: int = 15

    # Server
    CORS_ORIGINS: str = "http://localhost:3000"
    MAX_REQUEST_SIZE_MB: float = 1.0

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_BURST: int | None = None

    # Webhook security
    WEBHOOK_SHARED_SECRET: str | None = None

    # Observability
    LOG_JSON: bool = False
    METRICS_ENABLED: bool = False

settings = Settings()
