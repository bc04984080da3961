"""Tests for config module."""

import pytest
from pathlib import Path

from fim.config import MonitorConfig


class TestMonitorConfig:
    """Tests for MonitorConfig dataclass."""

    def test_default_values(self):
        config = MonitorConfig()

        assert config.tick_ms == 200
        assert config.stability_ms == 600
        assert config.verify_ms == 300
        assert config.rename_window_ms == 1200
        assert config.hash_algorithm == "sha256"
        assert config.baseline_dir == Path.home() / ".fim"
        assert config.transient_prefixes == ["~"]
        assert ".swp" in config.transient_suffixes

    def test_custom_values(self, tmp_path):
        config = MonitorConfig(tick_ms=50, stability_ms=100, baseline_dir=tmp_path)

        assert config.tick_ms == 50
        assert config.stability_ms == 100
        assert config.baseline_dir == tmp_path

    def test_baseline_dir_string_is_converted(self, tmp_path):
        config = MonitorConfig(baseline_dir=str(tmp_path))
        assert isinstance(config.baseline_dir, Path)

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError, match="verify_ms"):
            MonitorConfig(verify_ms=-1)

    def test_tick_seconds(self):
        assert MonitorConfig(tick_ms=250).tick_seconds == 0.25

    def test_mutable_defaults_are_independent(self):
        first = MonitorConfig()
        second = MonitorConfig()
        first.transient_suffixes.append(".part")

        assert ".part" not in second.transient_suffixes


class TestMonitorConfigFromEnv:
    """Tests for MonitorConfig.from_env."""

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FIM_TICK_MS", "50")
        monkeypatch.setenv("FIM_STABILITY_MS", "150")
        monkeypatch.setenv("FIM_VERIFY_MS", "75")
        monkeypatch.setenv("FIM_RENAME_WINDOW_MS", "900")
        monkeypatch.setenv("FIM_HASH_ALGORITHM", "sha1")
        monkeypatch.setenv("FIM_BASELINE_DIR", str(tmp_path))

        config = MonitorConfig.from_env()

        assert config.tick_ms == 50
        assert config.stability_ms == 150
        assert config.verify_ms == 75
        assert config.rename_window_ms == 900
        assert config.hash_algorithm == "sha1"
        assert config.baseline_dir == tmp_path

    def test_defaults_without_environment(self, monkeypatch):
        for var in ("FIM_TICK_MS", "FIM_STABILITY_MS", "FIM_VERIFY_MS",
                    "FIM_RENAME_WINDOW_MS", "FIM_HASH_ALGORITHM", "FIM_BASELINE_DIR"):
            monkeypatch.delenv(var, raising=False)

        assert MonitorConfig.from_env() == MonitorConfig()

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("FIM_TICK_MS", "50")

        config = MonitorConfig.from_env(tick_ms=80, stability_ms=None)

        assert config.tick_ms == 80
        assert config.stability_ms == 600

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("FIM_TICK_MS", "fast")

        with pytest.raises(ValueError, match="FIM_TICK_MS"):
            MonitorConfig.from_env()
