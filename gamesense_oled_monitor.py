"""
GameSense OLED PC Monitor

Shows live PC telemetry (CPU, memory, disks, temperatures...) on the OLED
screen of SteelSeries devices through the local GameSense engine. Pages of
two sensor readouts rotate on the display, each for its configured duration.

Usage:
    python gamesense_oled_monitor.py
    python gamesense_oled_monitor.py --settings path/to/settings.json
    python gamesense_oled_monitor.py --export-sensors   # list sensor names and exit

Configuration:
    Edit settings.json (created with defaults on first start); copy sensor
    name/hardware/type triples from available-sensors.json.
"""

import argparse
import logging
import sys
from pathlib import Path

from gamesense_oled.controller import BroadcastController
from gamesense_oled.settings import DEFAULT_SETTINGS_FILE, load_settings, write_default_settings

LOGGER = logging.getLogger("gamesense_oled")
DEFAULT_SENSORS_FILE = "available-sensors.json"
EXIT_CONFIGURATION = 2


def _configure_logging(log_level: str = "INFO", log_verbose_events: bool = True) -> None:
    """Configure app logging with standard Python logging."""
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    if not log_verbose_events and level < logging.WARNING:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="GameSense OLED PC Monitor")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_FILE,
                        help="Path to settings.json (default: %(default)s)")
    parser.add_argument("--export-sensors", nargs="?", const=DEFAULT_SENSORS_FILE, metavar="PATH",
                        help="Write the available sensor catalog to PATH and exit")
    parser.add_argument("--log-level", help="Override the log_level setting")
    return parser.parse_args(argv)


def _ensure_sensor_catalog(sensor_service, settings_path) -> None:
    """Write available-sensors.json beside the settings file unless it already exists."""
    sensors_path = Path(settings_path).with_name(DEFAULT_SENSORS_FILE)
    if sensors_path.exists():
        return
    try:
        sensor_service.export_sensors(sensors_path)
    except OSError as exc:
        LOGGER.warning("Could not write %s: %s", sensors_path, exc)


def main(argv=None, controller_factory=BroadcastController, sensor_service_factory=None) -> int:
    """Main function to run the OLED broadcast."""
    args = _parse_args(argv)
    _configure_logging(args.log_level or "INFO")

    if sensor_service_factory is None:
        from gamesense_oled.services.sensor_service import SensorService
        sensor_service_factory = SensorService
    sensor_service = sensor_service_factory()

    if args.export_sensors:
        sensor_service.export_sensors(args.export_sensors)
        return 0

    _ensure_sensor_catalog(sensor_service, args.settings)
    settings = load_settings(args.settings)
    if settings is None:
        path = write_default_settings(args.settings)
        LOGGER.warning("%s was created automatically. Please adjust and restart the program.", path)
        return EXIT_CONFIGURATION

    _configure_logging(args.log_level or settings.log_level, settings.log_verbose_events)
    controller = controller_factory(settings, sensor_service=sensor_service)
    try:
        if not controller.run():
            return EXIT_CONFIGURATION
    except KeyboardInterrupt:
        LOGGER.info("Stopped by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
