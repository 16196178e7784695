from __future__ import annotations

from dataclasses import dataclass

from resource_dash.config import AppConfig
from resource_dash.log_appender import LogAppender
from resource_dash.scheduler import SnapshotLogger
from resource_dash.sensors import SensorAdapter
from resource_dash.snapshot import SnapshotAggregator
from resource_dash.thresholds import AlertEvaluator, ThresholdStore


@dataclass
class DashboardContext:
    """Everything one dashboard process shares between requests and ticks."""

    config: AppConfig
    aggregator: SnapshotAggregator
    appender: LogAppender
    thresholds: ThresholdStore
    alerts: AlertEvaluator

    @classmethod
    def from_config(
        cls, config: AppConfig, adapter: SensorAdapter | None = None
    ) -> DashboardContext:
        if adapter is None:
            adapter = SensorAdapter(config.sensors)
        thresholds = ThresholdStore(config.thresholds)
        return cls(
            config=config,
            aggregator=SnapshotAggregator(adapter, config.sensors.memory_basis),
            appender=LogAppender(config.log.path),
            thresholds=thresholds,
            alerts=AlertEvaluator(thresholds, config.alerts),
        )

    def snapshot_logger(self) -> SnapshotLogger:
        return SnapshotLogger(self.aggregator, self.appender, self.alerts)

    def close(self) -> None:
        self.aggregator.adapter.close()
