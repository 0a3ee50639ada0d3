#!/usr/bin/env python3
"""
Tests for scraper configuration loading.
"""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from config import DEFAULT_SELECTORS, ScraperConfig, WeidianConfig, load_config


def test_defaults():
    config = ScraperConfig()

    assert config.selector_priority == DEFAULT_SELECTORS
    assert config.selector_priority[0] == '.product-image img'
    assert config.request_delay_ms == 200
    assert config.checkpoint_interval == 100
    assert config.products_path == Path("data/products.json")

    weidian = WeidianConfig()
    assert weidian.concurrency == 5
    assert weidian.request_delay_ms == 150
    assert "{item_id}" in weidian.item_url_template


def test_config_is_frozen():
    config = ScraperConfig()

    with pytest.raises(ValidationError):
        config.request_delay_ms = 0


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        WeidianConfig(concurrency=0)
    with pytest.raises(ValidationError):
        ScraperConfig(request_delay_ms=-5)


def test_load_config_overrides(tmp_path, logger):
    """camelCase keys override defaults; underscore keys are comments."""
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(json.dumps({
        "_comment": "slow down for the weekend crawl",
        "requestDelayMs": 1000,
        "checkpointInterval": 25,
        "selectorPriority": [".hero img", ".product-image img"],
    }), encoding="utf-8")

    config = load_config(ScraperConfig, config_file, logger)

    assert config.request_delay_ms == 1000
    assert config.checkpoint_interval == 25
    assert config.selector_priority == ('.hero img', '.product-image img')
    assert config.test_limit == 10


def test_load_config_sections(tmp_path):
    """One file can hold settings for both scrapers."""
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(json.dumps({
        "ScraperConfig": {"requestDelayMs": 500},
        "WeidianConfig": {"concurrency": 3, "requestDelayMs": 0},
    }), encoding="utf-8")

    assert load_config(ScraperConfig, config_file).request_delay_ms == 500
    weidian = load_config(WeidianConfig, config_file)
    assert weidian.concurrency == 3
    assert weidian.request_delay_ms == 0


def test_shared_flat_file_ignores_other_settings(tmp_path):
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(json.dumps({"concurrency": 8, "testLimit": 3}), encoding="utf-8")

    assert load_config(ScraperConfig, config_file).test_limit == 3
    assert load_config(WeidianConfig, config_file).concurrency == 8


@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2, 3]",
    '{"requestDelayMs": "soon"}',
])
def test_bad_config_falls_back_to_defaults(tmp_path, logger, content):
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(content, encoding="utf-8")

    assert load_config(ScraperConfig, config_file, logger) == ScraperConfig()


def test_missing_config_file(tmp_path):
    assert load_config(WeidianConfig, tmp_path / "nope.json") == WeidianConfig()


def test_unknown_keys_are_reported(tmp_path):
    """A misspelled setting is ignored but logged."""
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(json.dumps({
        "requestDelay": 1000,
        "concurrency": 3,
        "checkpointInterval": 20,
    }), encoding="utf-8")
    logger = Mock()

    config = load_config(ScraperConfig, config_file, logger)

    assert config.request_delay_ms == 200
    assert config.checkpoint_interval == 20
    logger.warning.assert_called_once()
    message = logger.warning.call_args[0][0]
    assert "requestDelay" in message
    assert "concurrency" not in message


def test_unknown_keys_in_section(tmp_path):
    config_file = tmp_path / "scraper-config.json"
    config_file.write_text(json.dumps({
        "WeidianConfig": {"concurrency": 3, "testLimit": 5},
    }), encoding="utf-8")
    logger = Mock()

    assert load_config(WeidianConfig, config_file, logger).concurrency == 3
    assert "testLimit" in logger.warning.call_args[0][0]
