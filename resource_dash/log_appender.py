from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
import logging
from pathlib import Path
import sys

from resource_dash.models import Stats, format_percent


class LogAppender:
    """Append-only text log of headline metrics, one line per snapshot.

    Lines are only ever appended and never rewritten, so file order is time
    order. There is no rotation: the file grows until someone removes it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = asyncio.Lock()

    @staticmethod
    def format_line(stats: Stats) -> str:
        local_ts = datetime.fromisoformat(stats.timestamp).astimezone()
        return (
            f"[{local_ts.isoformat(sep=' ', timespec='seconds')}] "
            f"CPU:{format_percent(stats.cpu_percent)} "
            f"RAM:{format_percent(stats.ram_percent)} "
            f"Battery:{format_percent(stats.battery_percent)}"
        )

    async def append_snapshot(self, stats: Stats) -> None:
        """Append one line for ``stats``; failures are logged, never raised."""
        line = self.format_line(stats) + "\n"
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, line)
            except OSError:
                self.logger.error("Failed to append to %s", self.path, exc_info=True)
                return
        self.logger.debug("Appended log line: %s", line.rstrip())

    def _write(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # One write() per line in append mode keeps lines whole.
        with open(self.path, "a", encoding="utf-8") as handle:
            handle.write(line)

    def read_recent_lines(self, n: int) -> list[str]:
        """Return up to the last ``n`` lines, oldest first."""
        if n <= 0:
            raise ValueError(f"n must be a positive integer, got {n}")
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                recent = deque(
                    (line.rstrip("\n") for line in handle if line.strip()),
                    # deque cannot hold more than sys.maxsize items
                    maxlen=min(n, sys.maxsize),
                )
        except FileNotFoundError:
            return []
        return list(recent)
