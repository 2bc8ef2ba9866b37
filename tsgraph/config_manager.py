"""Configuration manager for tsgraph using TOML files."""

from __future__ import annotations

import logging
from typing import Any, Dict

import toml

from .config import BASE_DIR, DEFAULT_ALIASES

logger = logging.getLogger(__name__)

CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "aliases": dict(DEFAULT_ALIASES),
    "parser": {
        "tolerate_syntax_errors": False,
    },
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", CONFIG_FILE, exc)
        return False


# ------------------------------------------------------------------
# Path aliases
# ------------------------------------------------------------------

def load_aliases() -> Dict[str, str]:
    """Return the ``[aliases]`` table, falling back to ``@/* -> src/*``."""
    aliases = load_full_config().get("aliases")
    if not aliases:
        return dict(DEFAULT_CONFIG["aliases"])
    return {str(k): str(v) for k, v in aliases.items()}


def save_aliases(aliases: Dict[str, str]) -> bool:
    """Replace the ``[aliases]`` table.

    Preserves ``[parser]`` and other sections in the file.
    """
    config = load_full_config()
    config["aliases"] = dict(aliases)
    return _save_full_config(config)


def set_alias(pattern: str, target: str) -> bool:
    """Add or overwrite a single alias such as ``~/*`` -> ``src/*``."""
    aliases = load_aliases()
    aliases[pattern] = target
    return save_aliases(aliases)


def remove_alias(pattern: str) -> bool:
    aliases = load_aliases()
    if pattern not in aliases:
        return False
    del aliases[pattern]
    return save_aliases(aliases)


# ------------------------------------------------------------------
# Parser settings
# ------------------------------------------------------------------

def load_parser_config() -> Dict[str, Any]:
    """Load parser settings from the ``[parser]`` section.

    Returns:
        Dict with at least ``tolerate_syntax_errors``.
    """
    merged = dict(DEFAULT_CONFIG["parser"])
    merged.update(load_full_config().get("parser", {}))
    return merged


def save_parser_config(**settings: Any) -> bool:
    config = load_full_config()
    parser = dict(config.get("parser", {}))
    parser.update(settings)
    config["parser"] = parser
    return _save_full_config(config)
