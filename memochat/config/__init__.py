"""Configuration module for memochat."""

from memochat.config.loader import load_config
from memochat.config.schema import Config

__all__ = ["Config", "load_config"]
