# app/core/config.py

from enum import Enum
import urllib.parse

from pydantic_settings import BaseSettings, SettingsConfigDict


class BlockPolicy(str, Enum):
    """What blocking does to a slot that is already bound to an appointment."""
    REFUSE = "refuse"      # fail with ConflictError, block nothing
    OVERRIDE = "override"  # block it anyway, keep the appointment binding
    SKIP = "skip"          # leave booked slots alone, block the rest


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Postgres ---
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "clinic_scheduling"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""

    # Full async URL override, e.g. sqlite+aiosqlite:///./data/scheduling.db
    DATABASE_URL: str | None = None

    # --- Security ---
    API_KEY: str | None = None

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_REQUESTS: bool = False
    LOG_RESPONSES: bool = False
    MAX_LOG_LENGTH: int = 200

    # --- Performance ---
    SLOW_REQUEST_THRESHOLD: float = 2.0
    ERROR_AGGREGATION_THRESHOLD: int = 10

    # --- Scheduling ---
    CLINIC_TIMEZONE: str = "America/Edmonton"
    SLOT_GENERATION_DAYS_AHEAD: int = 90
    RECURRING_EXCEPTION_LOOKAHEAD_DAYS: int = 90
    ALTERNATIVE_SEARCH_RADIUS_DAYS: int = 7
    ALTERNATIVE_MAX_RESULTS: int = 10
    SLOT_CLEANUP_OLDER_THAN_DAYS: int = 30
    SLOT_BLOCK_POLICY: BlockPolicy = BlockPolicy.REFUSE
    EXCEPTION_BLOCK_POLICY: BlockPolicy = BlockPolicy.OVERRIDE

    # Sync URI (offline Alembic SQL)
    @property
    def sync_db_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL.replace("+aiosqlite", "").replace("+asyncpg", "")
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Async URI (SQLAlchemy engine)
    @property
    def async_db_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def is_sqlite(self) -> bool:
        return self.async_db_uri.startswith("sqlite")

    # Monitoring helpers
    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV.lower() in ("test", "testing")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("production", "prod")

# Singleton
settings = Settings()
