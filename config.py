from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # General
    app_name: str = "Price Structure Service"
    debug: bool = False
    log_level: str = "INFO"

    # HTTP
    cors_origins: list[str] = ["*"]

    # Analysis input: trailing bars kept per request
    max_bars: int = 300

    model_config = {"env_file": ".env", "env_prefix": "PS_"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
