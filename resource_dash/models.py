"""Snapshot data models.

Every model is frozen; collections are tuples so a built ``Stats`` cannot be
mutated by whichever path ends up holding it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class DiskUsage:
    filesystem: str
    mount_point: str
    size_bytes: int
    used_bytes: int
    use_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "filesystem": self.filesystem,
            "mountPoint": self.mount_point,
            "sizeBytes": self.size_bytes,
            "usedBytes": self.used_bytes,
            "usePercent": self.use_percent,
        }


@dataclass(slots=True, frozen=True)
class GpuInfo:
    model: str
    vendor: str
    vram_mb: int
    utilization_percent: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "vendor": self.vendor,
            "vramMB": self.vram_mb,
            "utilizationPercent": self.utilization_percent,
        }


@dataclass(slots=True, frozen=True)
class ProcessSample:
    pid: int | None
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    mem_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "name": self.name,
            "cpuPercent": self.cpu_percent,
            "memPercent": self.mem_percent,
        }


@dataclass(slots=True, frozen=True)
class Stats:
    """One complete point-in-time reading of the host."""

    timestamp: str
    cpu_percent: float
    ram_percent: float
    battery_percent: float | None = None
    charging: bool | None = None
    disks: tuple[DiskUsage, ...] = ()
    gpus: tuple[GpuInfo, ...] = ()
    top_processes: tuple[ProcessSample, ...] = ()
    # Sensor families that reported absent for this reading.
    unavailable: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "cpuPercent": self.cpu_percent,
            "ramPercent": self.ram_percent,
            "batteryPercent": self.battery_percent,
            "chargingState": self.charging,
            "disks": [disk.to_dict() for disk in self.disks],
            "gpus": [gpu.to_dict() for gpu in self.gpus],
            "topProcesses": [proc.to_dict() for proc in self.top_processes],
            "unavailable": list(self.unavailable),
        }


@dataclass(slots=True, frozen=True)
class ThresholdConfig:
    cpu_percent: float = 90.0
    ram_percent: float = 85.0
    battery_percent: float = 15.0

    def to_dict(self) -> dict[str, float]:
        return {
            "cpu": self.cpu_percent,
            "ram": self.ram_percent,
            "battery": self.battery_percent,
        }


def format_number(value: float) -> str:
    """Render a 2-decimal value without trailing zeros (``12.50`` -> ``12.5``)."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_percent(value: float | None) -> str:
    return "N/A" if value is None else f"{format_number(value)}%"
