from __future__ import annotations


class ResourceDashError(Exception):
    """Base class for resource-dash errors."""


class SensorError(ResourceDashError):
    """A sensor query failed for a reason other than the sensor being absent."""

    def __init__(self, family: str, message: str | None = None) -> None:
        self.family = family
        super().__init__(message or f"Sensor query failed: {family}")


class UnsupportedFormat(ResourceDashError):
    def __init__(self, fmt: str) -> None:
        self.fmt = fmt
        super().__init__(f"Unsupported export format: {fmt}")
