from dataclasses import dataclass, field
from enum import Enum


class BroadcastState(str, Enum):
    INITIALIZING = "initializing"
    REGISTERING = "registering"
    RUNNING = "running"
    STOPPED = "stopped"


def _key_token(text: str) -> str:
    return str(text).lower().replace(" ", "_").replace("-", "_")


@dataclass(frozen=True)
class SensorSelector:
    name: str = ""
    hardware: str = ""
    sensor_type: str = ""
    prefix: str = ""
    suffix: str = ""
    decimal_places: int = 0
    key_instance: int = 1

    @property
    def is_blank(self) -> bool:
        return not self.name.strip()

    @property
    def base_key(self) -> str:
        return f"{_key_token(self.name)}_{_key_token(self.hardware)}_{_key_token(self.sensor_type)}"

    @property
    def key(self) -> str:
        """Stable lookup key; duplicates on one page differ only by key_instance."""
        return f"{self.base_key}_{self.key_instance}"

    @property
    def label(self) -> str:
        return self.name if not self.prefix.strip() else self.prefix

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            name=str(data.get("name") or ""),
            hardware=str(data.get("hardware") or ""),
            sensor_type=str(data.get("type") or ""),
            prefix=str(data.get("prefix") or ""),
            suffix=str(data.get("suffix") or ""),
            decimal_places=int(data.get("decimal_places") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "hardware": self.hardware,
            "type": self.sensor_type,
            "prefix": self.prefix,
            "suffix": self.suffix,
            "decimal_places": self.decimal_places,
        }


BLANK_SELECTOR = SensorSelector()


@dataclass(frozen=True)
class Page:
    duration_ms: int
    icon_id: int = 0
    sensors: tuple = ()

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            duration_ms=int(data.get("duration_ms") or 0),
            icon_id=int(data.get("icon_id") or 0),
            sensors=tuple(SensorSelector.from_dict(item) for item in (data.get("sensors") or [])),
        )

    def to_dict(self) -> dict:
        return {
            "duration_ms": self.duration_ms,
            "icon_id": self.icon_id,
            "sensors": [sensor.to_dict() for sensor in self.sensors if not sensor.is_blank],
        }


@dataclass(frozen=True)
class SensorInfo:
    """One entry of the hardware backend's sensor catalog."""

    name: str
    hardware: str
    sensor_type: str

    def matches(self, selector: SensorSelector) -> bool:
        return (
            self.name.lower() == selector.name.lower()
            and self.hardware.lower() == selector.hardware.lower()
            and self.sensor_type.lower() == selector.sensor_type.lower()
        )


@dataclass
class SessionState:
    registered: bool = False
    registered_events: set = field(default_factory=set)
    last_heartbeat_sent_at: float | None = None
    consecutive_failures: int = 0
    last_error: str | None = None
