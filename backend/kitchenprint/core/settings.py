"""
KitchenPrint - Configuration Management with pydantic-settings

Provides validated, type-safe configuration from environment variables.
All settings can be overridden via environment variables or .env file.
"""
from functools import lru_cache
from typing import Annotated, Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with validation.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # ===================
    # Application Settings
    # ===================
    PROJECT_NAME: str = "KitchenPrint"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="deployment environment")

    # ===================
    # Database Settings
    # ===================
    DATABASE_URL: str = Field(
        default="sqlite:///./kitchenprint.db",
        description="SQLAlchemy database URL"
    )
    AUTO_CREATE_TABLES: bool = Field(
        default=True,
        description="Create missing tables on startup"
    )

    # ===================
    # CORS Settings
    # ===================
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse comma-separated string to list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ===================
    # Print Agent (local bridge to physical printers)
    # ===================
    PRINT_AGENT_ENABLED: bool = Field(default=True, description="Send jobs through the local print agent")
    PRINT_AGENT_URL: str = Field(
        default="ws://localhost:8080/ws",
        description="WebSocket URL of the same-host print agent"
    )
    PRINT_AGENT_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Max seconds to wait for the agent to acknowledge a print"
    )
    PRINT_AGENT_LIST_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    PRINT_AGENT_CONNECT_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    PRINT_AGENT_RECONNECT_INITIAL_DELAY: float = Field(default=2.0, ge=0)
    PRINT_AGENT_RECONNECT_MAX_DELAY: float = Field(default=30.0, ge=0)
    PRINT_AGENT_RECONNECT_MULTIPLIER: float = Field(default=1.5, ge=1.0)
    PRINT_AGENT_RECONNECT_MAX_ATTEMPTS: int = Field(default=20, ge=0)

    NETWORK_PRINTER_PORT: int = Field(
        default=9100,
        ge=1,
        le=65535,
        description="Raw socket port used by network thermal printers"
    )

    # ===================
    # Ticket Settings
    # ===================
    BUSINESS_NAME: Optional[str] = Field(default=None, description="Printed at the top of control tickets")
    CURRENCY_SYMBOL: str = Field(default="$", max_length=3)

    # ===================
    # Logging Settings
    # ===================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log format: json or text")
    LOG_FILE: Optional[str] = Field(default=None, description="Log file path (optional)")
    AUDIT_LOG_FILE: Optional[str] = Field(default="./logs/audit.log", description="Audit log file path")

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process.
    """
    return Settings()


settings = get_settings()
