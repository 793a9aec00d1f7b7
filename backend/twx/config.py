"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "TWX"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    # CSRF origin allowlist (comma-separated). Defaults to ALLOWED_ORIGINS if unset.
    CSRF_TRUSTED_ORIGINS: str | None = None

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # Redis (login rate limiting)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Only trust X-Forwarded-* headers when running behind a trusted reverse proxy.
    TRUST_PROXY_HEADERS: bool = False

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    SESSION_PURGE_INTERVAL_SECONDS: int = 3600

    # Sessions (server-side, stored in the sessions table)
    SESSION_SECRET: str = "change-me"
    SESSION_COOKIE_NAME: str = "twx.sid"
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600
    SESSION_COOKIE_SAMESITE: str = "lax"
    # In production this MUST be True (requires HTTPS).
    SESSION_COOKIE_SECURE: bool = False

    # OpenID Connect
    OIDC_ISSUER_URL: str = "https://replit.com/oidc"
    OIDC_CLIENT_ID: str = ""
    OIDC_CLIENT_SECRET: str | None = None
    OIDC_SCOPES: str = "openid email profile offline_access"
    # Hosts allowed to receive the OIDC callback (comma-separated).
    OIDC_ALLOWED_DOMAINS: str = "localhost"
    OIDC_HTTP_TIMEOUT_SECONDS: int = 10
    OIDC_STATE_MAX_AGE_SECONDS: int = 300
    POST_LOGIN_REDIRECT: str = "/"

    # Auth hardening (enforced in the API layer using Redis)
    AUTH_LOGIN_IP_LIMIT_PER_MINUTE: int = 20

    # Inspection auto-save / client defaults
    CLIENT_AUTOSAVE_DELAY_SECONDS: float = 1.0
    CLIENT_ERROR_RESET_SECONDS: float = 3.0
    CLIENT_ONLINE_POLL_SECONDS: float = 15.0

    # Changelog shown in the UI
    CHANGELOG_PATH: str = "./data/changelog.json"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def oidc_allowed_domains(self) -> list[str]:
        """Get callback host allow-list as list."""
        return [d.strip().lower() for d in self.OIDC_ALLOWED_DOMAINS.split(",") if d.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.lower().startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
