"""
Settings Module for hackscan

Provides persistent storage for user preferences using JSON.
Settings are stored in config.json in the working directory.
"""

import dataclasses
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from hackscan.ocr.config import DetectionConfig
from hackscan.ocr.templates import Alphabet
from hackscan.scanner import SCAN_STRATEGIES

logger = logging.getLogger(__name__)

# Settings file location (working directory)
SETTINGS_FILE = Path("config.json")

# Default settings
DEFAULT_SETTINGS: Dict[str, Any] = {
    "debug_enabled": False,
    "strategy_name": "auto",
    "charset": None,
    "stability_threshold": 3,
    "detection": {},
}


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings from config.json.

    Args:
        path: Settings file (defaults to SETTINGS_FILE)

    Returns:
        Settings dictionary. Returns defaults if file missing or invalid.
    """
    path = Path(path) if path is not None else SETTINGS_FILE
    if not path.exists():
        logger.debug("Settings file not found, using defaults")
        return _defaults()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load settings: {e}, using defaults")
        return _defaults()

    if not isinstance(settings, dict):
        logger.warning("Settings file is not a JSON object, using defaults")
        return _defaults()

    # Merge with defaults to handle missing keys
    result = _defaults()
    result.update(settings)
    _replace_invalid(result)
    logger.debug(f"Settings loaded: {result}")
    return result


def save_settings(settings: Dict[str, Any], path: Optional[Path] = None) -> None:
    """
    Save settings to config.json.

    Args:
        settings: Settings dictionary to save
        path: Settings file (defaults to SETTINGS_FILE)
    """
    path = Path(path) if path is not None else SETTINGS_FILE
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2, ensure_ascii=False)
        logger.debug(f"Settings saved: {settings}")
    except OSError as e:
        logger.error(f"Failed to save settings: {e}")


def detection_config_from_settings(settings: Dict[str, Any]) -> DetectionConfig:
    """
    Build a DetectionConfig from the "detection" section of the settings.

    Unknown keys are ignored with a warning.
    """
    overrides = settings.get("detection") or {}
    known = {f.name for f in dataclasses.fields(DetectionConfig)}

    accepted = {}
    for key, value in overrides.items():
        if key in known:
            accepted[key] = value
        else:
            logger.warning(f"Ignoring unknown detection setting: {key}")

    return DetectionConfig(**accepted)


def _defaults() -> Dict[str, Any]:
    result = DEFAULT_SETTINGS.copy()
    result["detection"] = {}
    return result


def _replace_invalid(settings: Dict[str, Any]) -> None:
    """Reset values the scanner would reject to their defaults, with a warning."""
    charsets = [a.value for a in Alphabet]
    checks = {
        "strategy_name": lambda v: v in SCAN_STRATEGIES,
        "charset": lambda v: v is None or v in charsets,
        "stability_threshold": lambda v: isinstance(v, int) and not isinstance(v, bool) and v >= 1,
        "debug_enabled": lambda v: isinstance(v, bool),
    }
    for key, valid in checks.items():
        if not valid(settings[key]):
            logger.warning(f"Invalid setting {key}={settings[key]!r}, using {DEFAULT_SETTINGS[key]!r}")
            settings[key] = DEFAULT_SETTINGS[key]
