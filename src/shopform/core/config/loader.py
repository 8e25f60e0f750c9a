"""
Settings loading with multi-layer merging.

Implements the settings precedence chain:
    defaults < user config < project config < .env files < env vars < CLI flags

Everything below the CLI flags is merged once per process and cached; flags
are applied on top for each call.
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from .models import ShopformSettings

logger = logging.getLogger(__name__)

# Global cache to avoid reloading settings multiple times per process
_settings_cache: dict[str, Any] | None = None

ENV_PREFIX = "SHOPFORM_"


def get_user_config_path() -> Path:
    """``$XDG_CONFIG_HOME/shopform/config.json``, falling back to ~/.config."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(config_home) / "shopform" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Path to .shopform.json in ``cwd`` (defaults to current directory)."""
    return (cwd or Path.cwd()) / ".shopform.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge ``override`` into a copy of ``base``; nested sections merge key by key.

    Example:
        >>> deep_merge({"deploy": {"concurrency": 5, "delay": 0}}, {"deploy": {"delay": 1}})
        {'deploy': {'concurrency': 5, 'delay': 1}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge(current, value)
        merged[key] = value
    return merged


def load_json_file(path: Path) -> dict[str, Any] | None:
    """Read one settings layer; a missing, unreadable or non-object file is skipped."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top level must be an object", path)
        return None
    logger.debug("Loaded settings layer %s", path)
    return data


def get_user_env_path() -> Path:
    """Path to the user .env file, next to the user config."""
    return get_user_config_path().with_name(".env")


def read_env_files(project_dir: Path | None = None) -> dict[str, str]:
    """
    Collect SHOPFORM_* values from the user and project .env files.

    The project file wins over the user file. Other keys are ignored and
    nothing is written to the process environment.

    Returns:
        Mapping of SHOPFORM_* names to values
    """
    values: dict[str, str] = {}
    for path in (get_user_env_path(), get_project_config_path(project_dir).with_name(".env")):
        if not path.exists():
            continue
        for key, value in dotenv_values(path).items():
            if key and value is not None and key.startswith(ENV_PREFIX):
                values[key] = value
        logger.debug("Read environment file %s", path)
    return values


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result.setdefault(section, {})
    result[section][key] = value


def apply_env_overrides(
    config_dict: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """
    Apply environment variable overrides to settings.

    Supported env vars:
        SHOPFORM_URL - overrides api.url
        SHOPFORM_TOKEN - overrides api.token
        SHOPFORM_TIMEOUT - overrides deploy.command_timeout (seconds)
        SHOPFORM_CONCURRENCY - overrides deploy.concurrency

    ``environ`` defaults to the process environment. Invalid numeric values
    are logged and ignored.
    """
    env = os.environ if environ is None else environ
    result = deep_merge({}, config_dict)

    if url := env.get("SHOPFORM_URL"):
        _set(result, "api", "url", url)

    if token := env.get("SHOPFORM_TOKEN"):
        _set(result, "api", "token", token)

    if timeout_str := env.get("SHOPFORM_TIMEOUT"):
        try:
            timeout = float(timeout_str)
        except ValueError:
            logger.warning("Invalid SHOPFORM_TIMEOUT value '%s', ignoring", timeout_str)
        else:
            if timeout <= 0:
                logger.warning("SHOPFORM_TIMEOUT must be > 0, got %s, ignoring", timeout_str)
            else:
                _set(result, "deploy", "command_timeout", timeout)

    if concurrency_str := env.get("SHOPFORM_CONCURRENCY"):
        try:
            concurrency = int(concurrency_str)
        except ValueError:
            logger.warning("Invalid SHOPFORM_CONCURRENCY value '%s', ignoring", concurrency_str)
        else:
            if concurrency < 1:
                logger.warning(
                    "SHOPFORM_CONCURRENCY must be >= 1, got %s, ignoring", concurrency_str
                )
            else:
                _set(result, "deploy", "concurrency", concurrency)

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded default settings."""
    return {
        "api": {"timeout": 30.0},
        "deploy": {"concurrency": 5, "delay": 0.0},
        "reports": {"enabled": True, "directory": ".shopform/reports", "max_reports": 5},
        "document_path": "config.yml",
    }


def _drop_none(overrides: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, dict):
            nested = _drop_none(value)
            if nested:
                cleaned[key] = nested
        elif value is not None:
            cleaned[key] = value
    return cleaned


def load_settings(
    project_dir: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    use_cache: bool = True,
) -> ShopformSettings:
    """
    Load settings with multi-layer merging.

    Precedence (highest to lowest):
        1. ``overrides`` (CLI flags; None values are skipped)
        2. Environment variables (SHOPFORM_*), then project and user .env files
        3. Project config (.shopform.json)
        4. User config (~/.config/shopform/config.json)
        5. Hardcoded defaults

    Raises:
        ValidationError: If the merged settings fail Pydantic validation

    Example:
        >>> settings = load_settings(overrides={"deploy": {"concurrency": 2}})
        >>> settings.deploy.concurrency
        2
    """
    global _settings_cache

    if use_cache and _settings_cache is not None:
        merged = _settings_cache
    else:
        merged = get_default_config()
        if user_config := load_json_file(get_user_config_path()):
            merged = deep_merge(merged, user_config)
        if project_config := load_json_file(get_project_config_path(project_dir)):
            merged = deep_merge(merged, project_config)
        environ = {**read_env_files(project_dir), **os.environ}
        merged = apply_env_overrides(merged, environ)
        _settings_cache = merged

    if overrides:
        merged = deep_merge(merged, _drop_none(overrides))

    return ShopformSettings(**merged)


def clear_cache() -> None:
    """
    Clear the cached settings.

    Useful for testing or when config files change during execution.
    """
    global _settings_cache
    _settings_cache = None
