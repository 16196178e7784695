from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser
import os

MEMORY_BASES = ("used", "active")
PACKAGE_STATIC_DIR = Path(__file__).parent / "static"


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    static_dir: Path
    cors_origins: list[str]


@dataclass(frozen=True)
class LogConfig:
    path: Path
    interval_s: int


@dataclass(frozen=True)
class SensorConfig:
    timeout_s: float
    memory_basis: str
    nvidia_smi_path: str
    power_supply_dir: Path
    drm_dir: Path


@dataclass(frozen=True)
class ThresholdDefaults:
    cpu: float
    ram: float
    battery: float


@dataclass(frozen=True)
class AlertConfig:
    cpu_cooldown_s: float
    ram_cooldown_s: float
    battery_cooldown_s: float


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig
    log: LogConfig
    sensors: SensorConfig
    thresholds: ThresholdDefaults
    alerts: AlertConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a CFG file.

    Without a path every option takes its default. The ``PORT`` environment
    variable, when set, overrides ``[server] port``.
    """
    parser = configparser.ConfigParser()
    if path is not None:
        read_files = parser.read(path)
        if not read_files:
            raise FileNotFoundError(f"Config file not found: {path}")

    port = parser.getint("server", "port", fallback=3000)
    env_port = _get_optional(os.environ.get("PORT"))
    if env_port is not None:
        port = int(env_port)

    static_dir = _get_optional(parser.get("server", "static_dir", fallback=None))
    server = ServerConfig(
        host=parser.get("server", "host", fallback="127.0.0.1"),
        port=port,
        static_dir=Path(static_dir) if static_dir else PACKAGE_STATIC_DIR,
        cors_origins=_get_list(parser.get("server", "cors_origins", fallback="*")),
    )

    log = LogConfig(
        path=Path(parser.get("log", "path", fallback="logs/resource.log")),
        interval_s=parser.getint("log", "interval_s", fallback=60),
    )

    memory_basis = parser.get("sensors", "memory_basis", fallback="used").strip().lower()
    if memory_basis not in MEMORY_BASES:
        raise ValueError(
            f"Invalid memory_basis {memory_basis!r}; expected one of {', '.join(MEMORY_BASES)}"
        )
    sensors = SensorConfig(
        timeout_s=parser.getfloat("sensors", "timeout_s", fallback=5.0),
        memory_basis=memory_basis,
        nvidia_smi_path=parser.get("sensors", "nvidia_smi_path", fallback="nvidia-smi"),
        power_supply_dir=Path(
            parser.get("sensors", "power_supply_dir", fallback="/sys/class/power_supply")
        ),
        drm_dir=Path(parser.get("sensors", "drm_dir", fallback="/sys/class/drm")),
    )

    thresholds = ThresholdDefaults(
        cpu=parser.getfloat("thresholds", "cpu", fallback=90.0),
        ram=parser.getfloat("thresholds", "ram", fallback=85.0),
        battery=parser.getfloat("thresholds", "battery", fallback=15.0),
    )

    alerts = AlertConfig(
        cpu_cooldown_s=parser.getfloat("alerts", "cpu_cooldown_s", fallback=180.0),
        ram_cooldown_s=parser.getfloat("alerts", "ram_cooldown_s", fallback=180.0),
        battery_cooldown_s=parser.getfloat("alerts", "battery_cooldown_s", fallback=1800.0),
    )

    return AppConfig(
        server=server,
        log=log,
        sensors=sensors,
        thresholds=thresholds,
        alerts=alerts,
    )
