"""Configuration loading."""

from __future__ import annotations

from typing import Any

from memochat.config.schema import Config
from memochat.logging import get_logger

logger = get_logger(__name__)


def load_config(**overrides: Any) -> Config:
    """Build the settings object from the environment, applying explicit *overrides*."""
    config = Config(**overrides)
    logger.debug(
        "config_loaded",
        model=config.model,
        data_dir=str(config.data_path),
        recent_messages=config.window.recent_messages,
        summary_messages=config.window.summary_messages,
        memory_max_lines=config.memory.max_lines,
    )
    return config
