"""Tests for YAML configuration loading."""

from pathlib import Path

import pytest
import yaml

from phl_legality.config import AppConfig, _parse_config, _validate_config, load_config


def test_default_config():
    config = AppConfig()
    assert config.catalog.format == "pioneer"
    assert config.catalog.rate_limit_ms == 100
    assert config.catalog.default_retry_after_s == 60
    assert config.deck.required_size == 100
    assert config.cache_path == Path("./.cache/cards.json")
    assert config.data_dir == Path("./data")
    assert not config.build_mode


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "nope.yaml")
    assert config.catalog.metadata_url == "https://api.scryfall.com/bulk-data/oracle-cards"


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path).catalog.format == "pioneer"


def test_parse_partial_config():
    config = _parse_config({
        "catalog": {"cache_file": "/tmp/cards.json", "format": "Modern", "rate_limit_ms": 250},
        "deck": {"required_size": 60},
    })
    assert config.catalog.cache_file == "/tmp/cards.json"
    assert config.catalog.format == "modern"
    assert config.catalog.rate_limit_ms == 250
    assert config.catalog.fetch_attempts == 3
    assert config.deck.required_size == 60
    assert config.deck.max_card_quantity == 100
    assert config.lists.data_dir == "./data"


def test_load_example_config():
    example = Path(__file__).resolve().parent.parent / "config.example.yaml"
    config = load_config(example)
    assert config.catalog.backoff_step_s == 5
    assert config.lists.singleton_file == "singleton_exceptions.csv"


def test_cli_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"build_mode": False, "catalog": {"cache_file": "a.json"}}))
    config = load_config(path, build_mode=True, cache_file="b.json")
    assert config.build_mode
    assert config.catalog.cache_file == "b.json"


def test_build_mode_from_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"build_mode": True}))
    assert load_config(path).build_mode


@pytest.mark.parametrize("raw,message", [
    ({"catalog": {"format": "pioneer highlander"}}, "unknown format"),
    ({"catalog": {"rate_limit_ms": -1}}, "rate_limit_ms"),
    ({"catalog": {"fetch_attempts": 0}}, "fetch_attempts"),
    ({"catalog": {"download_retries": -1}}, "download_retries"),
    ({"catalog": {"metadata_url": ""}}, "metadata_url"),
    ({"deck": {"required_size": 0}}, "required_size"),
])
def test_validation_errors(raw, message):
    with pytest.raises(ValueError, match=message):
        _validate_config(_parse_config(raw))
