"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Router import**: The served router is located with an import string
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
4. Environment-based defaults (production vs development)
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field, ImportString, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from restrpc.core.constants import DEFAULT_MAX_BODY_SIZE, DEFAULT_OPENAPI_VERSION


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class HandlerConfig(BaseModel):
    """Request dispatch configuration."""

    max_body_size: int = Field(
        default=DEFAULT_MAX_BODY_SIZE,
        gt=0,
        description="Maximum accepted request body size in bytes",
    )
    coerce_scalars: bool = Field(
        default=True,
        description=(
            "Accept numbers, booleans and dates carried as strings in query, "
            "path and body values"
        ),
    )
    validate_router: bool | None = Field(
        default=None,
        description=(
            "Generate the OpenAPI document when the handler is built so an invalid "
            "router fails at startup. Defaults to on outside production."
        ),
    )


class OpenApiConfig(BaseModel):
    """Metadata of the generated OpenAPI document."""

    title: str | None = Field(
        default=None,
        description="Document title. Defaults to the application name.",
    )
    description: str | None = Field(default=None, description="Document description")
    version: str | None = Field(
        default=None,
        description="API version. Defaults to the application version.",
    )
    openapi_version: str = Field(
        default=DEFAULT_OPENAPI_VERSION,
        description="OpenAPI specification version of the document",
    )
    base_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Server URL advertised in the document",
    )
    docs_url: str | None = Field(
        default=None,
        description="External documentation URL",
    )
    tags: list[str] | None = Field(
        default=None,
        description="Top-level document tags",
    )

    @field_validator("docs_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(default="restrpc", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # API settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, description="API port")
    openapi_url: str | None = Field(
        default="/openapi.json", description="Generated OpenAPI document URL"
    )
    health_url: str | None = Field(default="/health", description="Health check URL")

    # Router served by the application, e.g. "myapp.api:app_router"
    router: ImportString[Any] | None = Field(
        default=None,
        description="Import string of the procedure router to serve",
    )

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    # Dispatch configuration
    handler_config: HandlerConfig = Field(
        default_factory=HandlerConfig, description="Request dispatch configuration"
    )

    # Document configuration
    openapi_config: OpenApiConfig = Field(
        default_factory=OpenApiConfig, description="OpenAPI document configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = (
                "console" if self.environment == "development" else "json"
            )

        if self.handler_config.validate_router is None:
            self.handler_config.validate_router = self.environment != "production"

    @field_validator("openapi_url", "health_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
