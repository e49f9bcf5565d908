from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_HISTORY_LIMIT, DEFAULT_STEP_TIMEOUT_MS


class RedisConfig(BaseModel):
    """Configuration for the Redis event bus."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    url: Optional[str] = None
    channel_prefix: str = "flowtide:"


class EventBusConfig(BaseModel):
    """Event bus configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()
    history_size: int = Field(default=100, ge=0)


class OrchestratorConfig(BaseModel):
    """Run execution settings."""

    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)
    default_step_timeout_ms: int = Field(default=DEFAULT_STEP_TIMEOUT_MS, gt=0)
    allow_placeholder_handlers: bool = True
    max_concurrent_runs_per_workflow: Optional[int] = Field(default=None, ge=1)


class SchedulerConfig(BaseModel):
    """Cron scheduler settings."""

    poll_interval_seconds: float = Field(default=1.0, gt=0)
    timezone: str = "UTC"


class FlowtideConfig(BaseModel):
    """Top-level configuration model."""

    event_bus: EventBusConfig = EventBusConfig()
    orchestrator: OrchestratorConfig = OrchestratorConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    workflows_file: Optional[str] = None


def load_config(path: Optional[str] = None) -> FlowtideConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWTIDE_CONFIG env
            variable or 'flowtide.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWTIDE_CONFIG", "flowtide.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowtideConfig(**data)
    else:
        config = FlowtideConfig()

    env_backend = os.getenv("FLOWTIDE_EVENT_BUS")
    if env_backend:
        config.event_bus.backend = env_backend.lower()
    env_redis_url = os.getenv("FLOWTIDE_REDIS_URL") or os.getenv("REDIS_URL")
    if env_redis_url:
        config.event_bus.redis.url = env_redis_url
    return config
