"""
Hardware Data Module

Reads live PC telemetry through psutil and exposes it as a flat catalog of
named sensors, each identified by (name, hardware, type):
- CPU load (total and per core) and clock
- Memory and swap usage
- Disk usage per mounted partition
- Temperatures and fan speeds where the platform reports them
- Battery charge
"""

import json
import logging
from pathlib import Path

import psutil

LOGGER = logging.getLogger("gamesense_oled.hardware")
BYTES_PER_GB = 1024 ** 3
BYTES_PER_MB = 1024 ** 2


class HardwareData:
    """Catalog and sample host sensors.

    Usage:
        hw = HardwareData()
        hw.list_available_sensors()
        values = hw.read_values(selectors)
    """

    def __init__(self, psutil_module=None):
        self._psutil = psutil_module or psutil
        self._readers = {}
        self._catalog = []
        self._build_catalog()
        # Prime the CPU counters; the first non-blocking sample is always 0.0.
        self._psutil.cpu_percent(interval=None, percpu=True)

    def _add(self, name: str, hardware: str, sensor_type: str, reader) -> None:
        key = (name.lower(), hardware.lower(), sensor_type.lower())
        if key in self._readers:
            return
        self._readers[key] = reader
        self._catalog.append({"name": name, "hardware": hardware, "type": sensor_type})

    def _build_catalog(self) -> None:
        ps = self._psutil
        self._add("CPU Total", "CPU", "Load", lambda: ps.cpu_percent(interval=None))
        for core in range(ps.cpu_count(logical=True) or 0):
            self._add(f"CPU Core #{core + 1}", "CPU", "Load", lambda core=core: ps.cpu_percent(interval=None, percpu=True)[core])
        if self._safe(ps.cpu_freq) is not None:
            self._add("CPU Clock", "CPU", "Clock", lambda: ps.cpu_freq().current)

        self._add("Memory", "Memory", "Load", lambda: ps.virtual_memory().percent)
        self._add("Memory Used", "Memory", "Data", lambda: ps.virtual_memory().used / BYTES_PER_GB)
        self._add("Memory Available", "Memory", "Data", lambda: ps.virtual_memory().available / BYTES_PER_GB)
        self._add("Swap", "Memory", "Load", lambda: ps.swap_memory().percent)
        self._add("Swap Used", "Memory", "SmallData", lambda: ps.swap_memory().used / BYTES_PER_MB)

        for partition in self._safe(ps.disk_partitions) or []:
            mountpoint = partition.mountpoint
            if self._safe(ps.disk_usage, mountpoint) is None:
                continue
            self._add("Used Space", mountpoint, "Load", lambda m=mountpoint: ps.disk_usage(m).percent)
            self._add("Free Space", mountpoint, "Data", lambda m=mountpoint: ps.disk_usage(m).free / BYTES_PER_GB)

        temperatures = self._safe(getattr(ps, "sensors_temperatures", None)) or {}
        for chip, entries in temperatures.items():
            for index, entry in enumerate(entries):
                label = entry.label or f"Temperature #{index + 1}"
                self._add(label, chip, "Temperature", lambda c=chip, i=index: ps.sensors_temperatures()[c][i].current)

        fans = self._safe(getattr(ps, "sensors_fans", None)) or {}
        for chip, entries in fans.items():
            for index, entry in enumerate(entries):
                label = entry.label or f"Fan #{index + 1}"
                self._add(label, chip, "Fan", lambda c=chip, i=index: ps.sensors_fans()[c][i].current)

        if self._safe(getattr(ps, "sensors_battery", None)) is not None:
            self._add("Charge Level", "Battery", "Level", lambda: ps.sensors_battery().percent)

    @staticmethod
    def _safe(func, *args):
        if not callable(func):
            return None
        try:
            return func(*args)
        except (OSError, RuntimeError, AttributeError, NotImplementedError) as exc:
            LOGGER.debug("Sensor probe %s failed: %s", getattr(func, "__name__", func), exc)
            return None

    def list_available_sensors(self) -> list[dict]:
        return list(self._catalog)

    def read_values(self, selectors) -> dict:
        """Return {selector.key: float | None}; unknown or unreadable sensors map to None."""
        values = {}
        for selector in selectors:
            reader = self._readers.get((selector.name.lower(), selector.hardware.lower(), selector.sensor_type.lower()))
            if reader is None:
                values[selector.key] = None
                continue
            try:
                values[selector.key] = float(reader())
            except (OSError, KeyError, IndexError, AttributeError, TypeError, ValueError, psutil.Error) as exc:
                LOGGER.debug("Reading %s failed: %s", selector.key, exc)
                values[selector.key] = None
        return values

    def export_sensors(self, path) -> Path:
        """Write the sensor catalog as JSON so names can be copied into settings."""
        export_path = Path(path)
        export_path.parent.mkdir(parents=True, exist_ok=True)
        export_path.write_text(json.dumps(self._catalog, indent=2) + "\n", encoding="utf-8")
        LOGGER.info("Exported %s sensors to %s.", len(self._catalog), export_path)
        return export_path
