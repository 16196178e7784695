"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import pytest

from resource_dash.config import SensorConfig, load_config
from resource_dash.context import DashboardContext
from resource_dash.sensors import (
    BATTERY,
    CPU,
    FAMILIES,
    FILESYSTEMS,
    GRAPHICS,
    MEMORY,
    PROCESSES,
    UNAVAILABLE,
    SensorAdapter,
)

GIB = 1024**3

SAMPLE_READINGS: dict[str, Any] = {
    CPU: {"current_load": 42.123},
    MEMORY: {"total": 16 * GIB, "used": 4 * GIB, "available": 12 * GIB, "active": 6 * GIB},
    BATTERY: {
        "source": "psutil",
        "present": None,
        "percent": 80,
        "max_capacity": None,
        "charging": True,
    },
    FILESYSTEMS: [
        {
            "device": "/dev/sda1",
            "mountpoint": "/",
            "fstype": "ext4",
            "total": 1000 * GIB,
            "used": 250 * GIB,
            "percent": 25.0,
        },
        {
            "device": "/dev/sdb1",
            "mountpoint": "/data",
            "fstype": "xfs",
            "total": 2000 * GIB,
            "used": 1500 * GIB,
            "percent": 75.0,
        },
    ],
    GRAPHICS: [
        {
            "name": "NVIDIA GeForce RTX 3060",
            "vendor": "NVIDIA",
            "memory_total_mb": "12288",
            "utilization_gpu": "7",
        }
    ],
    PROCESSES: [
        {"pid": 1, "name": "systemd", "cpu_percent": 0.5, "memory_percent": 0.1},
        {"pid": 200, "name": "python", "cpu_percent": 55.567, "memory_percent": 3.333},
        {"pid": 201, "name": "zombie", "cpu_percent": "n/a", "memory_percent": None},
        {"pid": 202, "name": 'say "hi", world', "cpu_percent": 12.0, "memory_percent": 1.0},
        {"pid": 203, "name": "firefox", "cpu_percent": 12.0, "memory_percent": 8.5},
        {"pid": 204, "name": "postgres", "cpu_percent": 3.25, "memory_percent": 2.0},
        {"pid": 205, "name": "nginx", "cpu_percent": 1.0, "memory_percent": 0.4},
        {"pid": 206, "name": "sshd", "cpu_percent": 0.0, "memory_percent": 0.2},
        {"pid": None, "name": None, "exe": "/usr/bin/kworker", "cpu_percent": 2.5, "memory_percent": 0.0},
        {"pid": 208, "name": "cron", "cpu_percent": 0.1, "memory_percent": 0.1},
        {"pid": 209, "name": "dockerd", "cpu_percent": 7.75, "memory_percent": 1.5},
    ],
}


class FakeAdapter(SensorAdapter):
    """Sensor adapter serving canned readings; exceptions in the map are raised."""

    def __init__(self, config: SensorConfig, readings: dict[str, Any]) -> None:
        super().__init__(config)
        self.readings = readings
        self.polls = 0

    async def poll(self, families: tuple[str, ...] = FAMILIES) -> dict[str, Any]:
        self.polls += 1
        return await super().poll(families)

    def _reading(self, family: str) -> Any:
        value = self.readings[family]
        if isinstance(value, BaseException):
            raise value
        return copy.deepcopy(value) if value is not UNAVAILABLE else value

    def cpu_load(self):
        return self._reading(CPU)

    def memory(self):
        return self._reading(MEMORY)

    def battery(self):
        return self._reading(BATTERY)

    def filesystems(self):
        return self._reading(FILESYSTEMS)

    def graphics(self):
        return self._reading(GRAPHICS)

    def processes(self):
        return self._reading(PROCESSES)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "linux: mark test as relying on Linux sysfs layouts"
    )
    config.addinivalue_line(
        "markers", "http: mark test as exercising the HTTP surface"
    )


@pytest.fixture
def readings() -> dict[str, Any]:
    """A fresh copy of the canned sensor readings."""
    return copy.deepcopy(SAMPLE_READINGS)


@pytest.fixture
def sensor_config(tmp_path: Path) -> SensorConfig:
    """Sensor config pointing every sysfs lookup into the test's tmp dir."""
    return SensorConfig(
        timeout_s=2.0,
        memory_basis="used",
        nvidia_smi_path="nvidia-smi-not-installed",
        power_supply_dir=tmp_path / "power_supply",
        drm_dir=tmp_path / "drm",
    )


@pytest.fixture
def fake_adapter(sensor_config, readings) -> FakeAdapter:
    return FakeAdapter(sensor_config, copy.deepcopy(readings))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "dash.cfg"
    path.write_text(
        "[server]\n"
        "host = 0.0.0.0\n"
        "port = 8080\n"
        "\n"
        "[log]\n"
        f"path = {tmp_path / 'logs' / 'resource.log'}\n"
        "interval_s = 60\n"
        "\n"
        "[sensors]\n"
        "timeout_s = 2\n"
        "memory_basis = used\n"
        f"power_supply_dir = {tmp_path / 'power_supply'}\n"
        f"drm_dir = {tmp_path / 'drm'}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def app_config(config_file, monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    return load_config(config_file)


@pytest.fixture
def context(app_config, fake_adapter) -> DashboardContext:
    return DashboardContext.from_config(app_config, adapter=fake_adapter)
