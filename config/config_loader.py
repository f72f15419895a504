"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
Every engine component takes its thresholds from here; none are hardcoded.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def _get_block(name: str) -> Any:
    config = load_config()
    if name not in config:
        raise KeyError(
            f"Config block '{name}' is missing. "
            f"Available: {list(config.keys())}"
        )
    return config[name]


def get_aggregation_config() -> Dict[str, Any]:
    """Returns the aggregation block (look-back window, fallback name)."""
    return _get_block("aggregation")


def get_frequency_config() -> Dict[str, Any]:
    """Returns the frequency block (bucket centers and tolerances)."""
    return _get_block("frequency")


def get_confidence_config() -> Dict[str, float]:
    """Returns confidence assignment thresholds."""
    return _get_block("confidence")


def get_activity_config() -> Dict[str, float]:
    """Returns the activity/recency block."""
    return _get_block("activity")


def get_summary_config() -> Dict[str, Any]:
    """Returns merchant summary settings."""
    return _get_block("summary")


def get_category_taxonomy() -> list[Dict[str, Any]]:
    """Returns the category taxonomy list."""
    return _get_block("category_taxonomy")


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
