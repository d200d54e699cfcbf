"""Configuration module for memosync."""

from memosync.config.loader import load_config, save_config, get_config_path
from memosync.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
