"""
Configuration for toolschema.

Settings are read from environment variables with the ``TOOLSCHEMA_`` prefix:

    TOOLSCHEMA_LOG_LEVEL=DEBUG
    TOOLSCHEMA_LOG_FORMAT=json
    TOOLSCHEMA_STRICT_OBJECTS=true
    TOOLSCHEMA_MAX_SUGGESTIONS=5
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """toolschema configuration."""

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    # Parsing
    strict_objects: bool = Field(
        default=False, description="Reject undeclared keys instead of stripping them"
    )
    max_suggestions: int = Field(default=3, ge=0, description="'Did you mean' suggestions per unknown key")

    model_config = {"env_prefix": "TOOLSCHEMA_"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (read once from the environment)."""
    return Settings()


def setup_logging(settings: Settings) -> None:
    """Configure the root logger from settings.

    Args:
        settings: toolschema settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
