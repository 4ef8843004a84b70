import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from gamesense_oled.models import Page, SensorSelector

LOGGER = logging.getLogger("gamesense_oled")
DEFAULT_SETTINGS_FILE = "settings.json"
GAME_NAME_RE = re.compile(r"^[A-Z0-9_-]+$")


@dataclass(frozen=True)
class AppSettings:
    update_interval_ms: int
    gamesense_retry_interval_ms: int
    gamesense_heartbeat_interval_ms: int
    pages: tuple
    gamesense_address: str = ""
    game_name: str = "GAMESENSE_OLED"
    game_display_name: str = "GameSense OLED PC Info"
    log_level: str = "INFO"
    log_verbose_events: bool = True

    def to_dict(self) -> dict:
        return {
            "update_interval_ms": self.update_interval_ms,
            "gamesense_retry_interval_ms": self.gamesense_retry_interval_ms,
            "gamesense_heartbeat_interval_ms": self.gamesense_heartbeat_interval_ms,
            "gamesense_address": self.gamesense_address,
            "game_name": self.game_name,
            "game_display_name": self.game_display_name,
            "log_level": self.log_level,
            "log_verbose_events": self.log_verbose_events,
            "pages": [page.to_dict() for page in self.pages],
        }


def default_settings() -> AppSettings:
    return AppSettings(
        update_interval_ms=1000,
        gamesense_retry_interval_ms=5000,
        gamesense_heartbeat_interval_ms=10000,
        pages=(
            Page(
                duration_ms=5000,
                icon_id=0,
                sensors=(
                    SensorSelector(name="CPU Total", hardware="CPU", sensor_type="Load", prefix="CPU ", suffix="%", decimal_places=0),
                    SensorSelector(name="Memory", hardware="Memory", sensor_type="Load", prefix="RAM ", suffix="%", decimal_places=0),
                ),
            ),
            Page(
                duration_ms=5000,
                icon_id=0,
                sensors=(
                    SensorSelector(name="Memory Used", hardware="Memory", sensor_type="Data", prefix="Used ", suffix="GB", decimal_places=1),
                    SensorSelector(name="Swap Used", hardware="Memory", sensor_type="SmallData", prefix="Swap ", suffix="GB", decimal_places=2),
                ),
            ),
        ),
    )


def _valid_log_level(level_name: str) -> bool:
    return isinstance(getattr(logging, str(level_name).upper(), None), int)


def _valid_address(address: str) -> bool:
    host, sep, port = str(address).strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        return False
    return 1 <= int(port) <= 65535


def validate_settings(settings: AppSettings) -> AppSettings:
    """Validate startup configuration and raise a clear error on invalid values."""
    errors = []

    if int(settings.update_interval_ms) <= 0:
        errors.append("update_interval_ms must be > 0.")
    if int(settings.gamesense_retry_interval_ms) <= 0:
        errors.append("gamesense_retry_interval_ms must be > 0.")
    if int(settings.gamesense_heartbeat_interval_ms) <= 0:
        errors.append("gamesense_heartbeat_interval_ms must be > 0.")
    if settings.gamesense_address and not _valid_address(settings.gamesense_address):
        errors.append("gamesense_address must be empty or 'host:port' with port between 1 and 65535.")
    if not GAME_NAME_RE.match(str(settings.game_name)):
        errors.append("game_name must only contain uppercase letters, digits, '_' or '-'.")
    if not str(settings.game_display_name).strip():
        errors.append("game_display_name must be a non-empty string.")
    if not _valid_log_level(settings.log_level):
        errors.append("log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL (or equivalent).")

    for index, page in enumerate(settings.pages, start=1):
        if int(page.duration_ms) <= 0:
            errors.append(f"pages[{index}].duration_ms must be > 0.")
        for sensor in page.sensors:
            if int(sensor.decimal_places) < 0:
                errors.append(f"pages[{index}] sensor '{sensor.name}': decimal_places must be >= 0.")

    if errors:
        raise ValueError("Invalid configuration:\n- " + "\n- ".join(errors))
    return settings


def parse_settings(data) -> AppSettings:
    if not isinstance(data, dict):
        raise ValueError("Invalid configuration:\n- Settings root must be a JSON object.")
    pages = data.get("pages")
    if not isinstance(pages, list):
        raise ValueError("Invalid configuration:\n- Missing required config setting: pages")
    defaults = default_settings()
    try:
        settings = AppSettings(
            update_interval_ms=int(data.get("update_interval_ms", defaults.update_interval_ms)),
            gamesense_retry_interval_ms=int(data.get("gamesense_retry_interval_ms", defaults.gamesense_retry_interval_ms)),
            gamesense_heartbeat_interval_ms=int(
                data.get("gamesense_heartbeat_interval_ms", defaults.gamesense_heartbeat_interval_ms)
            ),
            gamesense_address=str(data.get("gamesense_address") or ""),
            game_name=str(data.get("game_name") or defaults.game_name),
            game_display_name=str(data.get("game_display_name") or defaults.game_display_name),
            log_level=str(data.get("log_level") or defaults.log_level),
            log_verbose_events=bool(data.get("log_verbose_events", defaults.log_verbose_events)),
            pages=tuple(Page.from_dict(page) for page in pages),
        )
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid configuration:\n- {exc}") from exc
    return validate_settings(settings)


def load_settings(path=DEFAULT_SETTINGS_FILE) -> AppSettings | None:
    """Return parsed settings, or None when the file is missing or unusable."""
    settings_path = Path(path)
    if not settings_path.is_file():
        LOGGER.warning("%s does not exist.", settings_path)
        return None
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
        return parse_settings(data)
    except (OSError, ValueError) as exc:
        LOGGER.warning("%s could not be loaded: %s", settings_path, exc)
        return None


def write_default_settings(path=DEFAULT_SETTINGS_FILE) -> Path:
    settings_path = Path(path)
    if settings_path.exists():
        backup_path = settings_path.with_name(settings_path.name + ".invalid")
        settings_path.replace(backup_path)
        LOGGER.warning("Moved unusable %s to %s.", settings_path, backup_path)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(default_settings().to_dict(), indent=2) + "\n", encoding="utf-8")
    return settings_path
