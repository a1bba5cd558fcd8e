from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "xanime API"
    app_version: str = "0.1.0"
    debug: bool = False
    testing: bool = False

    # Supabase
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role: Optional[str] = None

    # Storage
    storage_bucket: str = "video"

    # Series creation
    series_max_insert_attempts: int = 12

    # Terms of service
    terms_version: str = "2024-10-01"

    # Rate Limiting
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 30
    rate_limit_window: int = 60  # seconds

    # CORS
    cors_origins: str = "*"  # Comma-separated origins or "*" for all

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
