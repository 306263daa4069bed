from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Application
    APP_NAME: str = "CS2 Server Backend"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # HTTP
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8000
    # Externally reachable base URL; the OpenID return_to is built from it
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Database
    DATABASE_URL: str = "sqlite:///./data/backend.db"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # ── Authentication ─────────────────────────────────────────────────
    # JWT
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TTL_MINUTES: int = 15
    JWT_REFRESH_TTL_DAYS: int = 30

    # Steam OpenID 2.0 provider
    STEAM_OPENID_URL: str = "https://steamcommunity.com/openid/login"
    OPENID_TIMEOUT_SECONDS: float = 10.0

    # Steam Web API (profile lookups)
    STEAM_API_KEY: str = ""
    STEAM_API_URL: str = "https://api.steampowered.com"
    STEAM_API_TIMEOUT_SECONDS: float = 10.0

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def _hmac_only(cls, value: str) -> str:
        if value not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return value

    @property
    def OPENID_RETURN_URL(self) -> str:
        """Callback URL handed to Steam and expected back in ``openid.return_to``."""
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/api/auth/process"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
