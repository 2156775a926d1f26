"""Configuration manager for codespan using TOML files."""

from __future__ import annotations

import logging
from typing import Any, Dict

import toml

from .config import BASE_DIR, CONFIG_FILE, EngineConfig, engine_config_from_mapping

logger = logging.getLogger(__name__)

ENGINE_SECTION = "engine"


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", CONFIG_FILE, exc)
        return False


def load_engine_section() -> Dict[str, Any]:
    """Load the ``[engine]`` section.

    Returns:
        Raw settings dict, or an empty dict when the file or section is missing.
    """
    section = load_full_config().get(ENGINE_SECTION, {})
    return section if isinstance(section, dict) else {}


def save_engine_setting(key: str, value: str) -> EngineConfig:
    """Persist one engine default.

    The value is validated by building the resulting EngineConfig first, so an
    invalid setting never reaches the file.

    Args:
        key: EngineConfig field name (e.g. ``context_lines``)
        value: Raw string value from the command line

    Returns:
        The effective engine configuration after the change.

    Raises:
        KeyError: If *key* is not an engine setting.
        UsageError: If *value* is invalid for *key*.
    """
    if key not in EngineConfig.__dataclass_fields__:
        raise KeyError(key)

    config = load_full_config()
    section = dict(config.get(ENGINE_SECTION, {}))
    section[key] = value
    effective = engine_config_from_mapping(section)

    config[ENGINE_SECTION] = {k: getattr(effective, k) for k in section}
    _save_full_config(config)
    return effective


def clear_engine_config() -> bool:
    """Remove ``[engine]`` section from config, resetting to defaults."""
    config = load_full_config()
    config.pop(ENGINE_SECTION, None)
    return _save_full_config(config)
