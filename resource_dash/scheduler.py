from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from resource_dash.errors import SensorError
from resource_dash.log_appender import LogAppender
from resource_dash.schema import validate_payload
from resource_dash.snapshot import SnapshotAggregator
from resource_dash.thresholds import AlertEvaluator


class Ticker:
    """Fire an async callback on every wall-clock multiple of ``interval_s``."""

    def __init__(self, interval_s: float, callback: Callable[[], Awaitable[None]]) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self.callback = callback
        self.logger = logging.getLogger(self.__class__.__name__)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self.logger.info("Ticker started; firing every %s seconds.", self.interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Ticker stopped.")

    def seconds_until_next_tick(self, now: float | None = None) -> float:
        now = time.time() if now is None else now
        return self.interval_s - (now % self.interval_s)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.seconds_until_next_tick())
            try:
                await self.callback()
            except Exception:
                # Next tick proceeds regardless.
                self.logger.exception("Scheduled callback failed.")


class SnapshotLogger:
    """The scheduled path: snapshot, validate, append, then check alerts."""

    def __init__(
        self,
        aggregator: SnapshotAggregator,
        appender: LogAppender,
        alerts: AlertEvaluator | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.appender = appender
        self.alerts = alerts
        self.logger = logging.getLogger(self.__class__.__name__)

    async def tick(self) -> None:
        try:
            stats = await self.aggregator.build_snapshot()
        except SensorError:
            self.logger.error("Skipping log tick: sensor query failed.", exc_info=True)
            return
        schema_errors = validate_payload(stats.to_dict())
        if schema_errors:
            self.logger.warning(
                "Schema validation failed with %s errors.", len(schema_errors)
            )
            self.logger.debug("Schema errors: %s", schema_errors)
        await self.appender.append_snapshot(stats)
        if self.alerts is not None:
            for alert in self.alerts.evaluate(stats):
                self.logger.warning("ALERT: %s", alert.message)
