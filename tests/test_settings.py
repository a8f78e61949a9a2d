"""
Test script for persistent settings.

Usage:
    pytest tests/test_settings.py
"""

import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hackscan.ocr import DEFAULT_CONFIG
from hackscan.settings import (
    DEFAULT_SETTINGS,
    detection_config_from_settings,
    load_settings,
    save_settings,
)


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "config.json")
    assert settings == DEFAULT_SETTINGS

    # Defaults are copies
    settings["detection"]["row_density"] = 0.5
    assert DEFAULT_SETTINGS["detection"] == {}


def test_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    settings = load_settings(path)
    settings["charset"] = "greek"
    settings["stability_threshold"] = 5
    save_settings(settings, path)

    loaded = load_settings(path)
    assert loaded["charset"] == "greek"
    assert loaded["stability_threshold"] == 5
    assert loaded["strategy_name"] == "auto"


def test_partial_file_merged_with_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"debug_enabled": True}), encoding="utf-8")

    settings = load_settings(path)
    assert settings["debug_enabled"] is True
    assert settings["stability_threshold"] == 3


def test_invalid_file_gives_defaults(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        assert load_settings(path) == DEFAULT_SETTINGS
    assert "Failed to load settings" in caplog.text

    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_settings(path) == DEFAULT_SETTINGS


def test_detection_overrides(caplog):
    settings = {"detection": {"row_density": 0.05, "min_target_cells": 4, "bogus": 1}}
    with caplog.at_level(logging.WARNING):
        config = detection_config_from_settings(settings)

    assert config.row_density == 0.05
    assert config.min_target_cells == 4
    assert config.block_divisor == DEFAULT_CONFIG.block_divisor
    assert "bogus" in caplog.text

    assert detection_config_from_settings({}) == DEFAULT_CONFIG
    assert detection_config_from_settings({"detection": None}) == DEFAULT_CONFIG


def test_invalid_values_replaced(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "strategy_name": "bogus",
        "charset": "klingon",
        "stability_threshold": 0,
        "debug_enabled": "yes",
    }), encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        settings = load_settings(path)

    assert settings["strategy_name"] == "auto"
    assert settings["charset"] is None
    assert settings["stability_threshold"] == 3
    assert settings["debug_enabled"] is False
    assert "strategy_name='bogus'" in caplog.text


def test_valid_values_kept(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"strategy_name": "pixel", "charset": "runes"}), encoding="utf-8")

    settings = load_settings(path)
    assert settings["strategy_name"] == "pixel"
    assert settings["charset"] == "runes"
