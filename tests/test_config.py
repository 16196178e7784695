"""Tests for CFG configuration loading."""
from __future__ import annotations

from pathlib import Path

import pytest

from resource_dash.config import PACKAGE_STATIC_DIR, load_config

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "example.cfg"


@pytest.fixture(autouse=True)
def no_port_env(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        config = load_config()
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 3000
        assert config.server.static_dir == PACKAGE_STATIC_DIR
        assert config.server.cors_origins == ["*"]
        assert config.log.path == Path("logs/resource.log")
        assert config.log.interval_s == 60
        assert config.sensors.timeout_s == 5.0
        assert config.sensors.memory_basis == "used"
        assert (config.thresholds.cpu, config.thresholds.ram, config.thresholds.battery) == (
            90.0,
            85.0,
            15.0,
        )
        assert config.alerts.battery_cooldown_s == 1800.0

    def test_values_from_file(self, config_file, tmp_path):
        config = load_config(config_file)
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.log.path == tmp_path / "logs" / "resource.log"
        assert config.sensors.timeout_s == 2.0
        assert config.sensors.drm_dir == tmp_path / "drm"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.cfg")

    def test_port_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("PORT", "9123")
        assert load_config(config_file).server.port == 9123

    def test_blank_port_env_ignored(self, config_file, monkeypatch):
        monkeypatch.setenv("PORT", "  ")
        assert load_config(config_file).server.port == 8080

    def test_memory_basis_active(self, tmp_path):
        path = tmp_path / "active.cfg"
        path.write_text("[sensors]\nmemory_basis = Active\n", encoding="utf-8")
        assert load_config(path).sensors.memory_basis == "active"

    def test_invalid_memory_basis(self, tmp_path):
        path = tmp_path / "bad.cfg"
        path.write_text("[sensors]\nmemory_basis = cached\n", encoding="utf-8")
        with pytest.raises(ValueError, match="memory_basis"):
            load_config(path)

    def test_cors_origins_list(self, tmp_path):
        path = tmp_path / "cors.cfg"
        path.write_text(
            "[server]\ncors_origins = http://a.example, http://b.example\n",
            encoding="utf-8",
        )
        assert load_config(path).server.cors_origins == [
            "http://a.example",
            "http://b.example",
        ]

    def test_example_config_loads(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.server.port == 3000
        assert config.thresholds.cpu == 90.0
        assert config.alerts.cpu_cooldown_s == 180.0
