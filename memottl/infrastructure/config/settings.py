"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.memottl/config.yaml). The memoization defaults
(ttl, max size) and the logging setup read their values from here.

Nothing is loaded at import time. The YAML file is read on first access;
the .env file is only loaded by the CLI through load_configuration().
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".memottl"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

FALLBACK_TTL_SECONDS = 60
FALLBACK_MAX_SIZE = 100
FALLBACK_LOG_LEVEL = "INFO"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False
_env_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('memoize.default_ttl')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE,
    env_file: Optional[Path] = None,
    force: bool = False,
    load_env: bool = True,
) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
        load_env: Also load the .env file into os.environ. Only the CLI does
            this; library use reads the YAML file alone.
    """
    global _config, _loaded, _env_loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
    else:
        _config = _load_yaml(config_file)
        _loaded = True

    if load_env and (force or not _env_loaded):
        _load_env_file(env_file)
        _env_loaded = True


def _load_yaml(config_file: Path) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")
    return config


def _load_env_file(env_file: Optional[Path]) -> None:
    # override=False keeps real environment variables on top
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")


def _coerce(value: str) -> Any:
    """Converts environment strings to bool/int/float where they look like one."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration
    2. Environment variable (key upper-cased, dots become underscores)
    3. YAML config
    4. Default value
    """
    _ensure_loaded()
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def _ensure_loaded() -> None:
    """Reads the YAML file on first access. Never touches os.environ."""
    if not _loaded:
        load_configuration(config_file=DEFAULT_CONFIG_FILE, load_env=False)


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    _ensure_loaded()
    logger.debug(f"Setting config: {key} = {value!r}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_default_ttl() -> Any:
    """Default ttl (seconds) for memoized operations declared without one."""
    value = get_config("MEMOTTL_DEFAULT_TTL")
    if value is None:
        value = get_config("memoize.default_ttl", FALLBACK_TTL_SECONDS)
    return value


def get_default_max_size() -> Any:
    """Default cache capacity for memoized operations declared without one."""
    value = get_config("MEMOTTL_DEFAULT_MAX_SIZE")
    if value is None:
        value = get_config("memoize.default_max_size", FALLBACK_MAX_SIZE)
    return value


def get_log_level() -> str:
    level = get_config("MEMOTTL_LOG_LEVEL") or get_config("logging.level", FALLBACK_LOG_LEVEL)
    return str(level).upper()


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values override any other configuration source.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

