"""
Application Configuration — Pydantic Settings

Connection parameters for InfluxDB are read from the process environment
(or a .env file) once, when this module is imported.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Priority: Environment variables > .env file > defaults

    Presence and format of the InfluxDB values are not validated; an empty
    token simply produces 401s from the database.
    """

    # === API Configuration ===
    PROJECT_NAME: str = "InfluxDB Starter"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # === CORS Configuration ===
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8080",
    ]

    # === InfluxDB Configuration ===
    # Organizations group resources such as users, tasks and buckets.
    INFLUXDB_ORGANIZATION: str = ""
    # The task API addresses the organization by id rather than by name.
    ORGANIZATION_ID: str = ""
    # URL of the InfluxDB instance or Cloud environment.
    INFLUXDB_HOST: str = "http://localhost:8086"
    INFLUXDB_TOKEN: str = ""
    INFLUXDB_BUCKET: str = ""
    # Bucket the alerting task copies zero-valued points into.
    PROCESSED_BUCKET: str = "processed_data_bucket"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # === Environment ===
    ENVIRONMENT: str = "local"  # local, development, staging, production

    # === Settings Configuration ===
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Settings dependency. Cached so the environment is read only once."""
    return Settings()


settings = get_settings()
