"""All settings, loaded from the .env file."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_url: str = "http://localhost:8000"
    database_url: str = "sqlite:///./printflow.db"
    log_level: str = "INFO"
    max_upload_size_mb: int = 50

    # Outbound email (HTTP API)
    email_api_url: str = ""
    email_api_key: str = ""
    email_from: str = "orders@printflow.local"
    internal_notification_emails: list[str] = []
    email_timeout_seconds: float = 15

    # Settlement
    proof_share_days: int = 7
    producer_terms_days: int = 10
    default_terms_days: int = 30
    outbox_max_attempts: int = 5

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_default: str = "120/minute"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
