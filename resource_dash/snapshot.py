from __future__ import annotations

from datetime import datetime, timezone
import logging

from resource_dash import normalizer
from resource_dash.models import ProcessSample, Stats
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

LIVE_TOP_PROCESSES = 5
EXPORT_TOP_PROCESSES = 10


class SnapshotAggregator:
    """Builds complete ``Stats`` readings from one round of sensor queries.

    The live endpoint, the scheduled logger and the export endpoint all go
    through ``build_snapshot`` so they agree on field meaning and rounding.
    """

    def __init__(self, adapter: SensorAdapter, memory_basis: str = "used") -> None:
        self.adapter = adapter
        self.memory_basis = memory_basis
        self.logger = logging.getLogger(self.__class__.__name__)

    async def build_snapshot(self, top_n: int = LIVE_TOP_PROCESSES) -> Stats:
        """Poll every sensor family once and normalize the results.

        ``SensorError`` propagates; a partial snapshot is never returned.
        """
        self.logger.debug("Building snapshot.")
        timestamp = datetime.now(timezone.utc).isoformat()
        readings = await self.adapter.poll(FAMILIES)
        unavailable = [
            family for family in FAMILIES if readings[family] is UNAVAILABLE
        ]

        cpu = normalizer.normalize_cpu(readings[CPU])
        if cpu is None and CPU not in unavailable:
            unavailable.append(CPU)
        ram = normalizer.normalize_memory(readings[MEMORY], self.memory_basis)
        if ram is None and MEMORY not in unavailable:
            unavailable.append(MEMORY)
        battery, charging = normalizer.normalize_battery(readings[BATTERY])
        if battery is None and BATTERY not in unavailable:
            unavailable.append(BATTERY)

        stats = Stats(
            timestamp=timestamp,
            cpu_percent=cpu if cpu is not None else 0.0,
            ram_percent=ram if ram is not None else 0.0,
            battery_percent=battery,
            charging=charging,
            disks=normalizer.normalize_filesystems(readings[FILESYSTEMS]),
            gpus=normalizer.normalize_graphics(readings[GRAPHICS]),
            top_processes=normalizer.top_processes(
                normalizer.normalize_processes(readings[PROCESSES]), top_n
            ),
            unavailable=tuple(family for family in FAMILIES if family in unavailable),
        )
        if stats.unavailable:
            self.logger.debug("Unavailable sensors: %s", ", ".join(stats.unavailable))
        return stats

    async def top_processes_only(
        self, k: int = LIVE_TOP_PROCESSES
    ) -> tuple[ProcessSample, ...]:
        readings = await self.adapter.poll((PROCESSES,))
        return normalizer.top_processes(
            normalizer.normalize_processes(readings[PROCESSES]), k
        )
