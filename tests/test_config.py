"""
tests/test_config.py — YAML Config Loader Tests
=================================================
"""

from __future__ import annotations

import pytest

from reflect.config import DEFAULT_PHONE_METRIC, DEFAULT_SLEEP_METRIC, load_config


def test_minimal_config_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('user_id: "abc"\n', encoding="utf-8")
    cfg = load_config(path)
    assert cfg.user_id == "abc"
    assert cfg.sleep_metric == DEFAULT_SLEEP_METRIC
    assert cfg.phone_metric == DEFAULT_PHONE_METRIC
    assert cfg.default_sleep_goal == 7.5
    assert cfg.default_phone_limit == 2.0
    assert cfg.refetch_after_commit is True
    assert cfg.api_port == 8000


def test_full_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "user_id: 42\n"
        "sleep_metric: Sleep\n"
        "phone_metric: Phone\n"
        "default_sleep_goal: 8\n"
        "default_phone_limit: 1.5\n"
        "refetch_after_commit: false\n"
        "api_port: 9000\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.user_id == "42"
    assert (cfg.sleep_metric, cfg.phone_metric) == ("Sleep", "Phone")
    assert cfg.default_sleep_goal == 8.0
    assert cfg.default_phone_limit == 1.5
    assert cfg.refetch_after_commit is False
    assert cfg.api_port == 9000


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "nope.yaml")


def test_missing_user_id(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("api_port: 8000\n", encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)
