"""Application configuration from environment variables."""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./rentbill.db",
        description="SQLAlchemy connection string (sqlite:/// URLs are upgraded to aiosqlite)",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # Billing
    bulk_concurrency: int = Field(
        default=1,
        ge=1,
        description="Contracts billed in parallel by bulk generation (keep 1 for SQLite)",
    )

    # API
    api_title: str = Field(default="RentBill API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    host: str = Field(default="0.0.0.0", description="Bind address for the API server")
    port: int = Field(default=8000, description="Port for the API server")


# Global settings instance
settings = Settings()
