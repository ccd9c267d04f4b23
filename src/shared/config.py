"""Configuration for the Project Assistant platform.

Values come from an optional YAML file (`APP_CONFIG_PATH`, default
`config/settings.yaml`), overridden per group by prefixed environment
variables. `get_settings()` loads once per process.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "config/settings.yaml"


def _env(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(env_prefix=prefix, env_file=".env", extra="ignore")


class ProviderSettings(BaseSettings):
    """AI provider connection."""
    provider: str = Field(default="openai", description="openai, azure_openai or mock")
    model: str = Field(default="o3-mini", description="Model for new project assistants")
    api_key: Optional[str] = Field(default=None)
    api_base: Optional[str] = Field(default=None, description="Base URL, or the Azure endpoint")
    api_version: Optional[str] = Field(default="2024-05-01-preview", description="Azure only")
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    max_network_retries: int = Field(default=2, ge=0, description="SDK transport retries")

    model_config = _env("PROVIDER_")


class ConversationSettings(BaseSettings):
    """Thread rotation, run polling and upload limits."""
    rotation_threshold: int = Field(default=50, gt=0)
    poll_interval_seconds: float = Field(default=1.5, gt=0)
    run_timeout_seconds: float = Field(default=90.0, gt=0)
    run_message_scan_limit: int = Field(default=20, gt=0)

    max_upload_bytes: int = Field(default=25 * 1024 * 1024, gt=0)
    upload_retry_attempts: int = Field(default=3, ge=1)
    upload_backoff_seconds: float = Field(default=1.0, ge=0, description="First wait; doubles")

    model_config = _env("CONVERSATION_")


class APISettings(BaseSettings):
    """HTTP server binding."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    model_config = _env("API_")


class Settings(BaseSettings):
    """Top-level settings; one nested group per component."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    api: APISettings = Field(default_factory=APISettings)

    model_config = _env("APP_")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Build settings from a YAML file; a missing file means defaults."""
        path = Path(path)
        if not path.is_file():
            return cls()
        return cls(**(yaml.safe_load(path.read_text(encoding="utf-8")) or {}))


@lru_cache
def get_settings() -> Settings:
    return Settings.from_yaml(os.environ.get("APP_CONFIG_PATH", DEFAULT_CONFIG_PATH))
