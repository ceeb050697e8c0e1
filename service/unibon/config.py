from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


INSECURE_JWT_SECRET = "your-super-secret-key-change-in-production"


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./data/unibon.db"

    # Auth
    jwt_secret: str = INSECURE_JWT_SECRET  # Override in production!
    jwt_expires_days: int = 7

    # OpenAI (global fallback key, REST only; bot users bring their own)
    openai_api_key: str = ""
    extraction_model: str = "gpt-4o-mini"

    # Telegram
    telegram_bot_token: str = ""
    telegram_mode: str = "polling"  # polling | webhook | disabled
    telegram_webhook_secret: str = ""  # Optional: for webhook verification
    telegram_poll_timeout: int = 30
    telegram_retry_delay: float = 5.0
    telegram_shutdown_timeout: float = 10.0  # seconds running handlers get to finish

    # Environment
    environment: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
