"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str
    DB_POOL_TIMEOUT_SECONDS: float = 5.0
    DB_CONNECT_TIMEOUT_SECONDS: int = 5
    # Default per-call statement timeout; callers may pass their own
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Principal token issued by the identity gateway (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""
    COOKIE_NAME: str = "plura_session"

    # Identity provider user metadata API (empty URL = dry run)
    IDP_API_URL: str = ""
    IDP_API_KEY: str = ""
    IDP_TIMEOUT_SECONDS: float = 5.0

    # Branding
    DEFAULT_AGENCY_LOGO: str = "/assets/plura-logo.svg"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Outbox worker
    WORKER_POLL_INTERVAL: int = 10
    WORKER_BATCH_SIZE: int = 10

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets


settings = Settings()
