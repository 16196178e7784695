from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
import time
from typing import Any, Callable

from resource_dash.config import AlertConfig, ThresholdDefaults
from resource_dash.models import Stats, ThresholdConfig, format_percent
from resource_dash.sensors import CPU, MEMORY

# Wire key -> ThresholdConfig field
THRESHOLD_FIELDS = {
    "cpu": "cpu_percent",
    "ram": "ram_percent",
    "battery": "battery_percent",
}


def _finite_number(value: Any) -> float | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


class ThresholdStore:
    """Owner of the process-wide alert thresholds."""

    def __init__(self, defaults: ThresholdDefaults | None = None) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        if defaults is None:
            self._config = ThresholdConfig()
        else:
            self._config = ThresholdConfig(
                cpu_percent=defaults.cpu,
                ram_percent=defaults.ram,
                battery_percent=defaults.battery,
            )

    def get(self) -> ThresholdConfig:
        return self._config

    def update(self, payload: Any) -> ThresholdConfig:
        """Merge numeric ``cpu``/``ram``/``battery`` values into the config.

        Anything else in the payload (unknown keys, strings, booleans, NaN or
        infinite numbers, a non-object payload) is ignored rather than
        rejected.
        """
        changes: dict[str, float] = {}
        if isinstance(payload, dict):
            for key, field_name in THRESHOLD_FIELDS.items():
                number = _finite_number(payload.get(key))
                if number is not None:
                    changes[field_name] = number
        if changes:
            self._config = replace(self._config, **changes)
            self.logger.info("Thresholds updated: %s", self._config.to_dict())
        else:
            self.logger.debug("Threshold update carried no numeric fields.")
        return self._config


@dataclass(frozen=True)
class Alert:
    metric: str
    value: float
    threshold: float
    message: str


class AlertEvaluator:
    """Compare readings against thresholds with a per-metric cool-down.

    Each metric remembers when it last fired and stays quiet until its own
    cool-down has elapsed; metrics never hold each other back.
    """

    def __init__(
        self,
        store: ThresholdStore,
        config: AlertConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.clock = clock
        self.cooldowns = {
            "cpu": config.cpu_cooldown_s,
            "ram": config.ram_cooldown_s,
            "battery": config.battery_cooldown_s,
        }
        self.last_fired: dict[str, float | None] = {metric: None for metric in self.cooldowns}

    def _ready(self, metric: str, now: float) -> bool:
        last = self.last_fired[metric]
        return last is None or now - last > self.cooldowns[metric]

    def evaluate(self, stats: Stats) -> list[Alert]:
        thresholds = self.store.get()
        now = self.clock()
        candidates: list[Alert] = []
        if CPU not in stats.unavailable and stats.cpu_percent >= thresholds.cpu_percent:
            candidates.append(
                Alert(
                    "cpu",
                    stats.cpu_percent,
                    thresholds.cpu_percent,
                    f"High CPU: {format_percent(stats.cpu_percent)}",
                )
            )
        if MEMORY not in stats.unavailable and stats.ram_percent >= thresholds.ram_percent:
            candidates.append(
                Alert(
                    "ram",
                    stats.ram_percent,
                    thresholds.ram_percent,
                    f"High RAM: {format_percent(stats.ram_percent)}",
                )
            )
        if (
            stats.battery_percent is not None
            and stats.battery_percent <= thresholds.battery_percent
        ):
            candidates.append(
                Alert(
                    "battery",
                    stats.battery_percent,
                    thresholds.battery_percent,
                    f"Low Battery: {format_percent(stats.battery_percent)}",
                )
            )

        fired: list[Alert] = []
        for alert in candidates:
            if self._ready(alert.metric, now):
                self.last_fired[alert.metric] = now
                fired.append(alert)
        return fired
