"""Resource Dash host metrics dashboard."""

from resource_dash.config import AppConfig, load_config
from resource_dash.context import DashboardContext
from resource_dash.models import Stats
from resource_dash.sensors import UNAVAILABLE, SensorAdapter
from resource_dash.server import create_app
from resource_dash.snapshot import SnapshotAggregator

__all__ = [
    "AppConfig",
    "DashboardContext",
    "SensorAdapter",
    "SnapshotAggregator",
    "Stats",
    "UNAVAILABLE",
    "create_app",
    "load_config",
]
