"""Sensor adapter: raw, source-shaped readings for each metric family.

Every query returns either a raw reading (dict or list of dicts) or the
``UNAVAILABLE`` marker. A missing sensor is never an error; anything else
that goes wrong while reading one is raised as ``SensorError``.
"""
from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable

import psutil

from resource_dash.config import SensorConfig
from resource_dash.errors import SensorError
from resource_dash.logging_utils import TRACE_LEVEL

CPU = "cpu"
MEMORY = "memory"
BATTERY = "battery"
FILESYSTEMS = "filesystems"
GRAPHICS = "graphics"
PROCESSES = "processes"
FAMILIES = (CPU, MEMORY, BATTERY, FILESYSTEMS, GRAPHICS, PROCESSES)

PCI_VENDORS = {
    "0x10de": "NVIDIA",
    "0x1002": "AMD",
    "0x8086": "Intel",
    "0x1af4": "Red Hat",
    "0x15ad": "VMware",
}

POWER_SUPPLY_STATUS = {
    "charging": True,
    "discharging": False,
    "not charging": False,
    "full": False,
}


class Unavailable:
    """Marker for a sensor that is not present on this host."""

    _instance: Unavailable | None = None

    def __new__(cls) -> Unavailable:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = Unavailable()


def has_battery(raw: dict[str, Any]) -> bool:
    """Decide whether a raw battery reading describes a real battery.

    Some platforms under-report presence, so any one of an explicit present
    flag, a nonzero charge percent or a nonzero design capacity counts.
    """
    if raw.get("present"):
        return True
    for key in ("percent", "max_capacity"):
        value = raw.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return True
    return False


class SensorAdapter:
    """Runs sensor queries on a private thread pool, one in flight per family.

    A query that hangs past its timeout keeps its worker; until it returns,
    later polls report that family unavailable instead of queueing more work.
    Other threaded I/O in the process never waits behind a stuck sensor.
    """

    def __init__(self, config: SensorConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self._queries: dict[str, Callable[[], Any]] = {
            CPU: self.cpu_load,
            MEMORY: self.memory,
            BATTERY: self.battery,
            FILESYSTEMS: self.filesystems,
            GRAPHICS: self.graphics,
            PROCESSES: self.processes,
        }
        self._executor = ThreadPoolExecutor(
            max_workers=len(self._queries), thread_name_prefix="sensor"
        )
        self._in_flight: dict[str, Future[Any]] = {}
        # First cpu_percent call always reports 0.0
        psutil.cpu_percent(interval=None)

    async def poll(self, families: tuple[str, ...] = FAMILIES) -> dict[str, Any]:
        """Query the given families concurrently and wait for all of them.

        A query that outlives ``timeout_s`` is reported as unavailable. If any
        query raised, the first error (in family order) is re-raised once all
        of them have settled.
        """
        results = await asyncio.gather(
            *(self._query(family) for family in families),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return dict(zip(families, results))

    async def _query(self, family: str) -> Any:
        pending = self._in_flight.get(family)
        if pending is not None and not pending.done():
            self.logger.warning(
                "Sensor %s is still busy with an earlier query; reporting unavailable.",
                family,
            )
            return UNAVAILABLE
        future = self._executor.submit(self._queries[family])
        self._in_flight[family] = future
        try:
            return await asyncio.wait_for(
                asyncio.wrap_future(future), timeout=self.config.timeout_s
            )
        except asyncio.TimeoutError:
            # The worker thread cannot be interrupted; its result is dropped.
            self.logger.warning(
                "Sensor %s did not answer within %.1fs; reporting unavailable.",
                family,
                self.config.timeout_s,
            )
            return UNAVAILABLE

    def close(self) -> None:
        """Stop accepting queries; a worker stuck in a sensor is left to finish."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def cpu_load(self) -> dict[str, Any]:
        try:
            load = psutil.cpu_percent(interval=None)
        except (OSError, psutil.Error) as exc:
            raise SensorError(CPU) from exc
        return {"current_load": load}

    def memory(self) -> dict[str, Any]:
        try:
            vm = psutil.virtual_memory()
        except (OSError, psutil.Error) as exc:
            raise SensorError(MEMORY) from exc
        return {
            "total": vm.total,
            "used": vm.used,
            "available": vm.available,
            # Only reported on Linux, macOS and BSD
            "active": getattr(vm, "active", None),
        }

    def battery(self) -> dict[str, Any] | Unavailable:
        try:
            primary = self._battery_psutil()
            if primary is not None and has_battery(primary):
                return primary
            secondary = self._battery_power_supply()
        except (OSError, psutil.Error) as exc:
            raise SensorError(BATTERY) from exc
        if secondary is not None:
            return secondary
        self.logger.debug("No battery detected.")
        return UNAVAILABLE

    def _battery_psutil(self) -> dict[str, Any] | None:
        if not hasattr(psutil, "sensors_battery"):
            self.logger.debug("Battery sensors not supported on this platform.")
            return None
        battery = psutil.sensors_battery()
        if battery is None:
            self.logger.debug("No battery data available from psutil.")
            return None
        return {
            "source": "psutil",
            "present": None,
            "percent": battery.percent,
            "max_capacity": None,
            "charging": battery.power_plugged,
        }

    def _battery_power_supply(self) -> dict[str, Any] | None:
        """Scan the kernel power-supply class for a battery psutil missed."""
        base = self.config.power_supply_dir
        if not base.is_dir():
            return None
        for entry in sorted(base.iterdir()):
            supply_type = self._read_file(entry / "type")
            if supply_type is None or supply_type.strip().lower() != "battery":
                continue
            present = self._read_file(entry / "present")
            status = self._read_file(entry / "status")
            max_capacity = self._read_int(entry / "energy_full")
            if max_capacity is None:
                max_capacity = self._read_int(entry / "charge_full")
            raw = {
                "source": "power_supply",
                "name": entry.name,
                "present": present.strip() == "1" if present is not None else None,
                "percent": self._read_int(entry / "capacity"),
                "max_capacity": max_capacity,
                "charging": (
                    POWER_SUPPLY_STATUS.get(status.strip().lower())
                    if status is not None
                    else None
                ),
            }
            self.logger.log(TRACE_LEVEL, "Power supply %s: %s", entry.name, raw)
            if has_battery(raw):
                return raw
        return None

    def filesystems(self) -> list[dict[str, Any]]:
        try:
            partitions = psutil.disk_partitions(all=False)
        except (OSError, psutil.Error) as exc:
            raise SensorError(FILESYSTEMS) from exc
        disks: list[dict[str, Any]] = []
        for part in partitions:
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                self.logger.debug("Skipping unreadable mount %s.", part.mountpoint)
                continue
            disks.append(
                {
                    "device": part.device,
                    "mountpoint": part.mountpoint,
                    "fstype": part.fstype,
                    "total": usage.total,
                    "used": usage.used,
                    "percent": usage.percent,
                }
            )
        return disks

    def graphics(self) -> list[dict[str, Any]] | Unavailable:
        try:
            gpus = self._gpus_nvidia_smi()
            skip_vendors = {"NVIDIA"} if gpus else set()
            gpus.extend(self._gpus_drm(skip_vendors))
        except OSError as exc:
            raise SensorError(GRAPHICS) from exc
        if not gpus:
            self.logger.debug("No graphics controllers detected.")
            return UNAVAILABLE
        return gpus

    def _gpus_nvidia_smi(self) -> list[dict[str, Any]]:
        output = self._run_command(
            [
                self.config.nvidia_smi_path,
                "--query-gpu=name,memory.total,utilization.gpu",
                "--format=csv,noheader,nounits",
            ]
        )
        if not output:
            return []
        gpus: list[dict[str, Any]] = []
        for line in output.strip().splitlines():
            fields = [item.strip() for item in line.split(",")]
            if len(fields) < 3:
                continue
            gpus.append(
                {
                    "name": fields[0],
                    "vendor": "NVIDIA",
                    "memory_total_mb": fields[1],
                    "utilization_gpu": fields[2],
                }
            )
        return gpus

    def _gpus_drm(self, skip_vendors: set[str]) -> list[dict[str, Any]]:
        base = self.config.drm_dir
        if not base.is_dir():
            return []
        gpus: list[dict[str, Any]] = []
        for card in sorted(base.glob("card[0-9]*")):
            # Connector entries look like card0-HDMI-A-1
            if "-" in card.name:
                continue
            device = card / "device"
            vendor_id = (self._read_file(device / "vendor") or "").strip().lower()
            vendor = PCI_VENDORS.get(vendor_id, vendor_id)
            if vendor in skip_vendors:
                continue
            product = self._read_file(device / "product_name")
            gpus.append(
                {
                    "model": product.strip() if product else None,
                    "vendor": vendor,
                    "vram_bytes": self._read_int(device / "mem_info_vram_total"),
                    "gpu_busy_percent": self._read_int(device / "gpu_busy_percent"),
                }
            )
        return gpus

    def processes(self) -> list[dict[str, Any]]:
        try:
            return [
                proc.info
                for proc in psutil.process_iter(
                    attrs=["pid", "name", "exe", "cpu_percent", "memory_percent"],
                    ad_value=None,
                )
            ]
        except (OSError, psutil.Error) as exc:
            raise SensorError(PROCESSES) from exc

    def _run_command(self, command: list[str]) -> str | None:
        try:
            result = subprocess.run(
                command,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.config.timeout_s,
            )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return None
        except subprocess.TimeoutExpired:
            self.logger.debug("Command timed out: %s", " ".join(command))
            return None
        if result.returncode != 0:
            self.logger.debug(
                "Command failed (%s): %s", result.returncode, " ".join(command)
            )
            if result.stderr:
                self.logger.log(TRACE_LEVEL, "stderr: %s", result.stderr.strip())
            return None
        if result.stdout:
            self.logger.log(TRACE_LEVEL, "stdout: %s", result.stdout.strip())
        return result.stdout

    def _read_file(self, path: Path) -> str | None:
        """Read a file and return its contents, or None if it doesn't exist."""
        try:
            return path.read_text()
        except (FileNotFoundError, PermissionError, OSError):
            return None

    def _read_int(self, path: Path) -> int | None:
        value = self._read_file(path)
        if value is None:
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None
