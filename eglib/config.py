"""Centralized configuration management for Easy Genomics file services.

Uses Pydantic BaseSettings for environment variable loading with validation.
Configuration is loaded once at startup and injected via dependency.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Easy Genomics application settings.

    All settings can be overridden via environment variables.
    Environment variable names are uppercase versions of the field names.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========== AWS Configuration ==========
    aws_default_region: str = Field(
        default="us-east-1",
        description="AWS region for all services",
    )
    aws_profile: Optional[str] = Field(
        default=None,
        description="AWS profile name (None uses default credentials chain)",
    )

    # ========== DynamoDB Table Names ==========
    laboratory_table_name: str = Field(
        default="easy-genomics-laboratory-table",
        description="DynamoDB table holding laboratory records",
    )
    laboratory_id_index: str = Field(
        default="LaboratoryId_Index",
        description="Global secondary index keyed by LaboratoryId",
    )

    # ========== Object Listing ==========
    listing_max_keys: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Default page size for delimiter-scoped object listings",
    )
    listing_delimiter: str = Field(
        default="/",
        description="Delimiter used to group keys into folders",
    )
    download_url_expires_in: int = Field(
        default=3600,
        ge=1,
        le=604800,
        description="Lifetime in seconds of presigned download URLs",
    )

    # ========== Authentication ==========
    cognito_user_pool_id: Optional[str] = Field(
        default=None,
        description="AWS Cognito User Pool ID",
    )
    cognito_app_client_id: Optional[str] = Field(
        default=None,
        description="AWS Cognito App Client ID",
    )
    enable_auth: bool = Field(
        default=False,
        description="Enable authentication (requires Cognito configuration)",
    )

    # ========== CORS Configuration ==========
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins (* for all)",
    )
    eg_env: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    # ========== Demo Mode ==========
    demo_mode: bool = Field(
        default=False,
        description="Grant demo_organization_access to unauthenticated callers. NEVER enable in production.",
    )
    demo_organization_access: str = Field(
        default="{}",
        description="OrganizationAccess claim (JSON) used for callers in demo mode",
    )

    # ========== API Server ==========
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8001,
        description="API server port",
    )
    api_base_url: str = Field(
        default="http://localhost:8001",
        description="Base URL used by clients of the file listing API",
    )

    # ========== File Tree ==========
    tree_cache_max_entries: Optional[int] = Field(
        default=None,
        ge=1,
        description="Bound on cached directories per file tree (None = unbounded)",
    )

    # ========== Logging ==========
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )

    @field_validator("eg_env")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"eg_env must be one of: {allowed}")
        return v.lower()

    @field_validator("demo_organization_access")
    @classmethod
    def validate_demo_organization_access(cls, v: str) -> str:
        """The demo claim must be a JSON object, exactly like the Cognito claim."""
        try:
            parsed = json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"demo_organization_access is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("demo_organization_access must be a JSON object")
        return v

    def get_cors_origins(self) -> List[str]:
        """Get list of CORS origins from comma-separated string.

        Raises ValueError if wildcard is used in production.
        """
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        if self.eg_env == "production" and "*" in origins:
            raise ValueError(
                "Wildcard CORS origin (*) is not allowed in production. "
                "Set CORS_ORIGINS to a comma-separated list of allowed origins."
            )
        return origins

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.eg_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.eg_env == "development"

    def validate_demo_mode(self) -> None:
        """Validate demo mode is not enabled in production.

        Raises:
            ValueError: If demo_mode is True in production environment.
        """
        if self.demo_mode and self.is_production:
            raise ValueError(
                "Demo mode (DEMO_MODE=true) is not allowed in production. "
                "Set EG_ENV to 'development' or 'staging' to use demo mode, "
                "or disable demo mode by setting DEMO_MODE=false."
            )

    def get_demo_claims(self) -> dict:
        """Claims handed to unauthenticated callers while demo mode is on."""
        return {"OrganizationAccess": self.demo_organization_access}

    @property
    def auth_configured(self) -> bool:
        """Check if authentication is properly configured."""
        return bool(self.cognito_user_pool_id and self.cognito_app_client_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    Use this function as a FastAPI dependency.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()


def get_settings_for_testing(**overrides) -> Settings:
    """Create settings instance with overrides for testing.

    This bypasses the cache, allowing tests to use custom configuration.
    """
    return Settings(**overrides)
