"""Configuration loading from TOML."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from restorable.config.models import DEFAULT_HOME, RestorableConfig
from restorable.errors import ConfigurationError

CONFIG_ENV_VAR = "RESTORABLE_CONFIG"


def default_config_path() -> Path:
    """Resolve the config path from ``$RESTORABLE_CONFIG`` or the home directory."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return (DEFAULT_HOME / "config.toml").expanduser()


def load_config(config_path: Path | None = None) -> RestorableConfig:
    """Load restorable configuration from a TOML file.

    Args:
        config_path: Path to config.toml (default: ``$RESTORABLE_CONFIG`` or
            ``~/.restorable/config.toml``)

    Returns:
        Validated RestorableConfig

    Raises:
        ConfigurationError: If the file is missing, is not valid TOML, or
            fails validation.
    """
    if config_path is None:
        config_path = default_config_path()
    config_path = Path(config_path).expanduser()

    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found at {config_path}.\n"
            f"Run 'restorable init' or set {CONFIG_ENV_VAR}."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse config file {config_path}: {e}") from e

    try:
        return RestorableConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {config_path}:\n{e}") from e
