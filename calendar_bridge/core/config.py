# calendar_bridge/core/config.py
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Google OAuth client
    GOOGLE_CLIENT_ID: str
    GOOGLE_CLIENT_SECRET: str
    GOOGLE_REDIRECT_URI: str

    # Persistence
    DATABASE_URL: str

    # Where the OAuth callback sends the browser back to
    FRONTEND_URL: str

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"

    # Token lifecycle
    TOKEN_REFRESH_BUFFER_SECONDS: int = 300
    TOKEN_URI: str = "https://oauth2.googleapis.com/token"
    AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
    REVOKE_URI: str = "https://oauth2.googleapis.com/revoke"

    # Calendar
    EVENTS_PAGE_SIZE: int = 10
    DEFAULT_TIME_ZONE: str = "UTC"

    SCOPES: list[str] = [
        'https://www.googleapis.com/auth/calendar',
        'https://www.googleapis.com/auth/calendar.events',
        'openid',
        'https://www.googleapis.com/auth/userinfo.email',
        'https://www.googleapis.com/auth/userinfo.profile',
    ]


@lru_cache
def load_settings() -> Settings:
    """Reads settings from the environment once; raises ValidationError if required values are missing."""
    return Settings()
