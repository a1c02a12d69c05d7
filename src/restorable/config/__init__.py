"""Configuration management: TOML loading and config models.

Usage:
    >>> from restorable.config import load_config, RestorableConfig
"""

from restorable.config.loader import default_config_path, load_config
from restorable.config.models import RestorableConfig

__all__ = ["load_config", "default_config_path", "RestorableConfig"]
