"""Connector configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars,
which is how the scheduler hands settings to a connector process.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class RetryConfig(BaseSettings):
    """Retry / backoff settings driven by Tenacity."""

    model_config = {"env_prefix": "RETRY_"}

    max_attempts: int = Field(default=5, description="Maximum attempts per crawl pass")
    initial_wait_seconds: float = Field(
        default=1.0,
        description="Initial backoff wait in seconds",
    )
    max_wait_seconds: float = Field(
        default=60.0,
        description="Maximum backoff wait in seconds",
    )
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")


class IngestionAPIConfig(BaseSettings):
    """Ingestion API HTTP client settings."""

    model_config = {"env_prefix": "INGESTION_API_"}

    base_url: str = Field(
        default="http://ingestion-api:8000",
        description="Base URL of the ingestion API (empty disables delivery)",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    verify_tls: bool = Field(default=True, description="Verify the server TLS certificate")


class ConnectorConfig(BaseSettings):
    """Root configuration for a connector instance.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {"env_prefix": "CONNECTOR_"}

    name: str = Field(description="Unique connector name (e.g. mailbox)")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level name")

    retry: RetryConfig = Field(default_factory=RetryConfig)
    ingestion_api: IngestionAPIConfig = Field(default_factory=IngestionAPIConfig)
