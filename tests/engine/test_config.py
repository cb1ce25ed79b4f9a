"""Engine configuration loading."""

from __future__ import annotations

from linkaudit.engine.config import load_config


def test_defaults_without_file(engine_config):
    assert engine_config.pages_per_batch == 30
    assert engine_config.mystique_batch_size == 100
    assert engine_config.high_priority_threshold == 1500
    assert engine_config.medium_priority_threshold == 500
    assert engine_config.alternative_url_denylist == [".pdf", ".xlsx", ".pptx", ".docx"]
    assert engine_config.top_pages_source == "ahrefs"


def test_yaml_overrides_merge_over_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("pages_per_batch: 10\npriority:\n  high: 1000\n", encoding="utf-8")

    config = load_config(path)

    assert config.pages_per_batch == 10
    assert config.high_priority_threshold == 1000
    assert config.medium_priority_threshold == 500
    assert config.interval_days == 30


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")

    assert config.fetch_max_retries == 1
