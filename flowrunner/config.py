from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_HTTP_TIMEOUT, RESEND_API_URL
from .utils.retry import RetryPolicy


class HttpConfig(BaseModel):
    """Settings shared by handlers that talk HTTP."""

    timeout: float = DEFAULT_HTTP_TIMEOUT


class EmailConfig(BaseModel):
    """Configuration for the Resend email API."""

    api_url: str = RESEND_API_URL
    api_key: Optional[str] = None
    from_email: Optional[str] = None
    site_domain: str = "localhost"


class SchedulerConfig(BaseModel):
    """Settings for resuming waiting executions."""

    batch_size: int = 10


class FlowRunnerConfig(BaseModel):
    """Top-level configuration model."""

    http: HttpConfig = Field(default_factory=HttpConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> FlowRunnerConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWRUNNER_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWRUNNER_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowRunnerConfig(**data)
    else:
        config = FlowRunnerConfig()

    env_db_url = os.getenv("FLOWRUNNER_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    if os.getenv("RESEND_API_KEY"):
        config.email.api_key = os.getenv("RESEND_API_KEY")
    if os.getenv("RESEND_FROM_EMAIL"):
        config.email.from_email = os.getenv("RESEND_FROM_EMAIL")
    if os.getenv("FLOWRUNNER_LOG_LEVEL"):
        config.log_level = os.getenv("FLOWRUNNER_LOG_LEVEL")
    return config
