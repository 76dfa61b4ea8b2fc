from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env lives at the project root, next to pyproject.toml
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings, read from the environment and ``.env``."""

    database_url: str = "sqlite:///./zapshift.db"

    stripe_secret_key: str = ""
    stripe_timeout_seconds: float = Field(default=10, gt=0)
    checkout_currency: str = "usd"
    site_domain: str = "http://localhost:5173"

    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    log_level: str = "INFO"
    tracking_prefix: str = "ZP"

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
