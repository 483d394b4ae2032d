"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Storage sets themselves are NOT declared here. They are discovered from
free-form variables such as R2_BUCKET or R2_2_ENDPOINT by the backend
resolver; these settings only tune how the service treats them. None of
the names below end in a recognized set property, so they never form a
set of their own.
"""

import os
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import dotenv_values
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.storage.pruner import MAX_DELETE_BATCH, MAX_SAMPLE_LIMIT
from ..core.storage.resolver import ResolverDefaults


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "bucketsets API"
    api_version: str = "v1"

    # Storage set discovery
    backend_prefixes: str = Field(
        default="",
        description="Comma-separated set prefixes to load (e.g. R2,S3). Empty loads every group found."
    )
    backend_default_region: str = Field(
        default="auto",
        description="Region for sets that don't set one. R2 uses 'auto'."
    )
    backend_force_path_style: bool = Field(
        default=False,
        description="Use path-style addressing (needed by MinIO and some self-hosted backends)."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory buckets instead of real S3 clients. Enables local dev without object storage."
    )
    list_page_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Keys requested per list call."
    )

    # Pruning
    prune_default_ttl_seconds: int = Field(
        default=86400,
        ge=0,
        description="Age in seconds after which images are pruned when ?ttl= is not given."
    )
    prune_batch_size: int = Field(
        default=MAX_DELETE_BATCH,
        ge=1,
        description="Keys per bulk delete call. Capped at 1000 by the S3 API."
    )
    prune_sample_limit: int = Field(
        default=MAX_SAMPLE_LIMIT,
        ge=0,
        description="Maximum keys echoed back by a dry run. Capped at 1000; the reported count is always exact."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins. Empty uses the sets' FRONTEND_ORIGIN values."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # .env also holds the free-form set variables
        extra="ignore",
    )

    @field_validator("prune_batch_size")
    @classmethod
    def cap_batch_size(cls, value: int) -> int:
        return min(value, MAX_DELETE_BATCH)

    @field_validator("prune_sample_limit")
    @classmethod
    def cap_sample_limit(cls, value: int) -> int:
        return min(value, MAX_SAMPLE_LIMIT)

    @property
    def backend_prefixes_list(self) -> list[str]:
        """Parse comma-separated prefixes into a list."""
        return [p.strip() for p in self.backend_prefixes.split(",") if p.strip()]

    @property
    def cors_origins_list(self) -> Optional[list[str]]:
        """Parse comma-separated CORS origins, or None to derive them from the sets."""
        if not self.cors_origins.strip():
            return None
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resolver_defaults(self) -> ResolverDefaults:
        return ResolverDefaults(
            region=self.backend_default_region,
            force_path_style=self.backend_force_path_style,
        )

    def backend_environ(self) -> Mapping[str, str]:
        """
        The mapping storage sets are discovered from.

        Values from the .env file are included; real environment
        variables take precedence over them.
        """
        env_file = self.model_config.get("env_file")
        file_values = {}
        if env_file and os.path.exists(env_file):
            file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        return {**file_values, **os.environ}


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
