"""Tests for configuration loading and validation."""

import os

import pytest
from pydantic import ValidationError

from osc_monitor.config_manager import Config, FeedConfig, LogFormat, read_yaml, validate_config

ROOT_CONF = os.path.join(os.path.dirname(__file__), "..", "conf.yaml")


def test_defaults_match_the_documented_values() -> None:
    config = Config()
    assert config.system_config.port == 12393
    assert config.feed_config.chunk_ms == 3 * 86400 * 1000
    assert config.feed_config.max_lookback_ms == 30 * 86400 * 1000
    assert {s.format for s in config.feed_config.sources.values()} == set(LogFormat)
    assert config.metrics_config.graph_grouping == "pod_prefix"
    assert config.backend_config.loki_base.endswith("/loki/api/v1")


def test_read_yaml_substitutes_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("GRAFANA_TOKEN", "s3cret")
    monkeypatch.delenv("UNSET_THING", raising=False)
    path = tmp_path / "conf.yaml"
    path.write_text(
        "backend_config:\n"
        '  grafana_url: "https://grafana.example/"\n'
        '  grafana_token: "${GRAFANA_TOKEN}"\n'
        '  loki_uid: "${UNSET_THING}"\n',
        encoding="utf-8",
    )

    config = validate_config(read_yaml(path))

    assert config.backend_config.grafana_token == "s3cret"
    assert config.backend_config.loki_uid == ""
    assert config.backend_config.grafana_url == "https://grafana.example"
    assert config.backend_config.auth_headers["Authorization"] == "Bearer s3cret"


def test_read_yaml_missing_and_empty(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read_yaml(tmp_path / "nope.yaml")
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert read_yaml(empty) == {}


def test_root_conf_yaml_validates() -> None:
    config = validate_config(read_yaml(ROOT_CONF))
    assert len(config.feed_config.sources) == 4
    assert config.feed_config.sources["gui_audit"].limit == 200


@pytest.mark.parametrize(
    "data",
    [
        {"system_config": {"port": 70000}},
        {"system_config": {"colour": "blue"}},
        {"feed_config": {"chunk_days": 40, "max_lookback_days": 30}},
        {"feed_config": {"sources": {"x": {"format": "syslog", "query": "{}"}}}},
        {"metrics_config": {"graph_grouping": "random"}},
    ],
)
def test_invalid_config_is_rejected(data) -> None:
    with pytest.raises(ValidationError):
        validate_config(data)


def test_poll_interval_below_one_falls_back() -> None:
    assert FeedConfig(poll_interval_sec=0).poll_interval_sec == 30
