"""Tests for environment-driven configuration."""
import logging
from pathlib import Path

import pytest

from forest_core.config import (DEFAULT_AUTO_ACCEPT,
                                DEFAULT_SUGGESTION_THRESHOLD, ForestConfig)
from forest_core.services.scoring import ScoreThresholds


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every Forest override so defaults apply."""
    for name in (
        "FOREST_AUTO_ACCEPT",
        "FOREST_SUGGESTION_THRESHOLD",
        "FOREST_EMBED_PROVIDER",
        "FOREST_EMBED_MODEL",
        "FOREST_REMOTE_TIMEOUT",
        "FOREST_TAG_LIMIT",
        "FOREST_METRICS_FILE",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestThresholds:
    def test_defaults(self, clean_env):
        cfg = ForestConfig()
        assert cfg.auto_accept_threshold == DEFAULT_AUTO_ACCEPT == 0.5
        assert cfg.suggestion_threshold == DEFAULT_SUGGESTION_THRESHOLD == 0.25

    def test_env_overrides(self, clean_env):
        clean_env.setenv("FOREST_AUTO_ACCEPT", "0.7")
        clean_env.setenv("FOREST_SUGGESTION_THRESHOLD", "0.3")
        cfg = ForestConfig()
        assert cfg.auto_accept_threshold == 0.7
        assert cfg.suggestion_threshold == 0.3

    def test_unparseable_value_falls_back(self, clean_env, caplog):
        clean_env.setenv("FOREST_AUTO_ACCEPT", "high")
        with caplog.at_level(logging.WARNING):
            cfg = ForestConfig()
        assert cfg.auto_accept_threshold == 0.5
        assert "FOREST_AUTO_ACCEPT" in caplog.text

    def test_empty_value_falls_back(self, clean_env):
        clean_env.setenv("FOREST_SUGGESTION_THRESHOLD", "  ")
        assert ForestConfig().suggestion_threshold == 0.25

    def test_negative_threshold_rejected(self, clean_env):
        with pytest.raises(ValueError):
            ForestConfig(auto_accept_threshold=-0.1)
        with pytest.raises(ValueError):
            ForestConfig(suggestion_threshold=-1.0)

    def test_inverted_thresholds_warn(self, clean_env, caplog):
        with caplog.at_level(logging.WARNING):
            ForestConfig(auto_accept_threshold=0.2, suggestion_threshold=0.4)
        assert "no edge will ever be classified as suggested" in caplog.text

    def test_score_thresholds_from_config(self, clean_env):
        cfg = ForestConfig(auto_accept_threshold=0.8, suggestion_threshold=0.4)
        assert ScoreThresholds.from_config(cfg) == ScoreThresholds(auto_accept=0.8, suggestion=0.4)


class TestProviderSettings:
    def test_defaults(self, clean_env):
        cfg = ForestConfig()
        assert cfg.embed_provider == "local"
        assert cfg.embed_model is None
        assert cfg.openai_api_key is None
        assert cfg.remote_timeout is None
        assert cfg.tag_limit == 5

    def test_env_overrides(self, clean_env):
        clean_env.setenv("FOREST_EMBED_PROVIDER", "openai")
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("FOREST_REMOTE_TIMEOUT", "2.5")
        clean_env.setenv("FOREST_TAG_LIMIT", "8")
        cfg = ForestConfig()
        assert cfg.embed_provider == "openai"
        assert cfg.openai_api_key == "sk-env"
        assert cfg.remote_timeout == 2.5
        assert cfg.tag_limit == 8

    def test_metrics_file(self, clean_env):
        assert ForestConfig().metrics_file is None
        clean_env.setenv("FOREST_METRICS_FILE", "stats/metrics.json")
        assert ForestConfig().metrics_file == Path("stats/metrics.json")

    def test_tag_limit_must_be_positive(self, clean_env):
        with pytest.raises(ValueError):
            ForestConfig(tag_limit=0)


class TestDatabaseUrl:
    def test_in_memory(self):
        assert ForestConfig(database_path=":memory:").get_db_url() == "sqlite://"

    def test_relative_path_resolved_against_base_dir(self, temp_dir):
        cfg = ForestConfig(base_dir=temp_dir, database_path=Path("db/forest.db"))
        assert cfg.get_db_url() == f"sqlite:///{temp_dir / 'db' / 'forest.db'}"
        assert (temp_dir / "db").is_dir()

    def test_absolute_path_kept(self, temp_dir):
        db_file = temp_dir / "abs.db"
        assert ForestConfig(database_path=db_file).get_absolute_path(db_file) == db_file
