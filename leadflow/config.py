from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_DEDUPLICATION_TTL_HOURS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAYS_MS,
)


class RedisConfig(BaseModel):
    """Configuration for Redis connections."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Inbound transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    topic: str = "ai-results"
    queue_prefix: str = "leadflow"
    poll_interval: float = 0.1
    redis: RedisConfig = RedisConfig()


class LedgerConfig(BaseModel):
    """Idempotency ledger settings."""

    backend: Literal["repository", "redis"] = "repository"
    ttl_hours: int = DEFAULT_DEDUPLICATION_TTL_HOURS


class DeadLetterConfig(BaseModel):
    """Retry and dead-letter settings."""

    max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    retry_delays_ms: List[int] = Field(
        default_factory=lambda: list(DEFAULT_RETRY_DELAYS_MS)
    )


class CircuitBreakerSettings(BaseModel):
    """Default thresholds applied to every circuit."""

    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_ms: int = 60_000
    monitoring_period_ms: int = 120_000


class WorkflowConfig(BaseModel):
    """Workflow execution settings."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    cache_definitions: bool = False
    definitions_path: Optional[str] = None


class ChannelsConfig(BaseModel):
    """Outbound channel client settings."""

    whatsapp_api_url: str = "https://graph.facebook.com"
    whatsapp_api_version: str = "v18.0"
    request_timeout: float = 10.0


class TelemetryConfig(BaseModel):
    otel_enabled: bool = False
    service_name: str = "leadflow"


class LeadflowConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    database_url: Optional[str] = None
    ledger: LedgerConfig = LedgerConfig()
    dead_letter: DeadLetterConfig = DeadLetterConfig()
    circuit_breaker: CircuitBreakerSettings = CircuitBreakerSettings()
    workflow: WorkflowConfig = WorkflowConfig()
    channels: ChannelsConfig = ChannelsConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    encryption_key: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> LeadflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to LEADFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("LEADFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = LeadflowConfig(**data)
    else:
        config = LeadflowConfig()

    env_db_url = os.getenv("LEADFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_key = os.getenv("LEADFLOW_ENCRYPTION_KEY")
    if env_key:
        config.encryption_key = env_key
    return config
