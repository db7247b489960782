"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Storage backend: "sql" (relational) or "json" (single document)
    STORAGE_BACKEND: str = "sql"
    DATABASE_URL: str = "sqlite:///./petroleum.db"
    JSON_STORE_PATH: str = "./data/store.json"  # Empty string keeps the document in memory

    # Bearer credential (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 12

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    LOG_LEVEL: str = "INFO"

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 10  # Login attempts

    # Demo data
    SEED_ON_STARTUP: bool = True

    # Telemetry simulator
    SIMULATOR_ENABLED: bool = True
    SIMULATOR_INTERVAL_SECONDS: float = 5.0
    SIMULATOR_DRIFT_LITERS: float = 100.0
    SIMULATOR_MEASUREMENT_WINDOW: int = 200
    SIMULATOR_ALERT_PROBABILITY: float = 0.2
    SIMULATOR_CRITICAL_PROBABILITY: float = 0.3
    SIMULATOR_ATG_ALERT_PROBABILITY: float = 0.08
    SIMULATOR_CONNECTIVITY_FLIP_PROBABILITY: float = 0.03
    SIMULATOR_CLAMP_TO_CAPACITY: bool = True

    # Result caps
    ALERTS_PAGE_LIMIT: int = 500
    HISTORY_PAGE_LIMIT: int = 300
    AUDIT_PAGE_LIMIT: int = 300

    # Event stream
    EVENTS_KEEPALIVE_SECONDS: float = 15.0
    EVENTS_SUBSCRIBER_QUEUE_SIZE: int = 100

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

    @property
    def uses_json_store(self) -> bool:
        return self.STORAGE_BACKEND.strip().lower() == "json"


settings = Settings()
