"""Normalization of raw sensor readings into the ``Stats`` field types.

Each field is resolved from a priority tuple of raw keys: the first key that
holds a usable value wins, later keys are only consulted when earlier ones
are missing or unusable. All functions here are pure.
"""
from __future__ import annotations

import math
from typing import Any, Iterable

from resource_dash.models import DiskUsage, GpuInfo, ProcessSample
from resource_dash.sensors import UNAVAILABLE, has_battery

CPU_LOAD_KEYS = ("current_load", "load_pct")
MEMORY_TOTAL_KEYS = ("total",)
BATTERY_PERCENT_KEYS = ("percent", "capacity")
DISK_FS_KEYS = ("device", "fs")
DISK_MOUNT_KEYS = ("mountpoint", "mount")
DISK_SIZE_KEYS = ("total", "size")
DISK_USED_KEYS = ("used",)
DISK_PERCENT_KEYS = ("percent", "use")
GPU_MODEL_KEYS = ("model", "name")
GPU_VENDOR_KEYS = ("vendor",)
GPU_VRAM_MB_KEYS = ("vram_mb", "memory_total_mb")
GPU_VRAM_BYTES_KEYS = ("vram_bytes",)
GPU_UTILIZATION_KEYS = ("utilization_gpu", "gpu_busy_percent")
PROCESS_PID_KEYS = ("pid",)
PROCESS_NAME_KEYS = ("name", "exe", "command")
PROCESS_CPU_KEYS = ("cpu_percent", "pcpu", "cpu")
PROCESS_MEM_KEYS = ("memory_percent", "pmem", "mem")


def as_number(value: Any) -> float | None:
    """Return ``value`` as a finite float, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def first_number(raw: dict[str, Any], keys: Iterable[str]) -> float | None:
    for key in keys:
        number = as_number(raw.get(key))
        if number is not None:
            return number
    return None


def first_text(raw: dict[str, Any], keys: Iterable[str]) -> str | None:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def clamp_percent(value: float) -> float:
    return round(min(max(value, 0.0), 100.0), 2)


def normalize_cpu(raw: dict[str, Any] | Any) -> float | None:
    """CPU load percent, or None when the sensor is unavailable.

    Callers that need a number substitute 0 and record the family as
    unavailable, so "idle" and "unknown" stay distinguishable.
    """
    if raw is UNAVAILABLE:
        return None
    load = first_number(raw, CPU_LOAD_KEYS)
    if load is None:
        return None
    return clamp_percent(load)


def normalize_memory(raw: dict[str, Any] | Any, basis: str) -> float | None:
    """Memory usage as ``raw[basis] / total * 100``.

    ``basis`` is one field (``used`` or ``active``) for the whole
    deployment; a reading without it is unavailable rather than computed
    from the other field.
    """
    if raw is UNAVAILABLE:
        return None
    total = first_number(raw, MEMORY_TOTAL_KEYS)
    in_use = as_number(raw.get(basis))
    if not total or in_use is None:
        return None
    return clamp_percent(in_use / total * 100)


def normalize_battery(raw: dict[str, Any] | Any) -> tuple[float | None, bool | None]:
    """Return ``(percent, charging)``; both None without a real battery."""
    if raw is UNAVAILABLE or not has_battery(raw):
        return None, None
    percent = first_number(raw, BATTERY_PERCENT_KEYS)
    charging = raw.get("charging")
    return (
        clamp_percent(percent) if percent is not None else None,
        bool(charging) if charging is not None else None,
    )


def normalize_filesystems(raw: list[dict[str, Any]] | Any) -> tuple[DiskUsage, ...]:
    if raw is UNAVAILABLE:
        return ()
    disks: list[DiskUsage] = []
    for entry in raw:
        size = first_number(entry, DISK_SIZE_KEYS) or 0
        used = first_number(entry, DISK_USED_KEYS) or 0
        percent = first_number(entry, DISK_PERCENT_KEYS)
        if percent is None:
            percent = used / size * 100 if size else 0.0
        disks.append(
            DiskUsage(
                filesystem=first_text(entry, DISK_FS_KEYS) or "",
                mount_point=first_text(entry, DISK_MOUNT_KEYS) or "",
                size_bytes=int(size),
                used_bytes=int(used),
                use_percent=clamp_percent(percent),
            )
        )
    return tuple(disks)


def _vram_mb(entry: dict[str, Any]) -> int:
    vram = first_number(entry, GPU_VRAM_MB_KEYS)
    if vram is not None:
        return int(vram)
    vram_bytes = first_number(entry, GPU_VRAM_BYTES_KEYS)
    if vram_bytes is not None:
        return int(vram_bytes // (1024 * 1024))
    return 0


def normalize_graphics(raw: list[dict[str, Any]] | Any) -> tuple[GpuInfo, ...]:
    if raw is UNAVAILABLE:
        return ()
    gpus: list[GpuInfo] = []
    for entry in raw:
        utilization = first_number(entry, GPU_UTILIZATION_KEYS)
        gpus.append(
            GpuInfo(
                model=first_text(entry, GPU_MODEL_KEYS) or "unknown",
                vendor=first_text(entry, GPU_VENDOR_KEYS) or "",
                vram_mb=_vram_mb(entry),
                utilization_percent=(
                    clamp_percent(utilization) if utilization is not None else None
                ),
            )
        )
    return tuple(gpus)


def normalize_processes(raw: list[dict[str, Any]] | Any) -> tuple[ProcessSample, ...]:
    """Map every process entry; unusable CPU/memory values become 0."""
    if raw is UNAVAILABLE:
        return ()
    samples: list[ProcessSample] = []
    for entry in raw:
        pid = first_number(entry, PROCESS_PID_KEYS)
        samples.append(
            ProcessSample(
                pid=int(pid) if pid is not None else None,
                name=first_text(entry, PROCESS_NAME_KEYS) or "unknown",
                cpu_percent=round(first_number(entry, PROCESS_CPU_KEYS) or 0.0, 2),
                mem_percent=round(first_number(entry, PROCESS_MEM_KEYS) or 0.0, 2),
            )
        )
    return tuple(samples)


def top_processes(
    samples: Iterable[ProcessSample], k: int
) -> tuple[ProcessSample, ...]:
    """The ``k`` busiest processes, ties kept in enumeration order."""
    ranked = sorted(samples, key=lambda sample: sample.cpu_percent, reverse=True)
    return tuple(ranked[:k])
