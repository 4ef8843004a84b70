from gamesense_oled.models import SensorInfo


class SensorService:
    def __init__(self, backend=None):
        if backend is None:
            from hardware_data import HardwareData
            backend = HardwareData()
        self._backend = backend

    def list_available_sensors(self) -> list[SensorInfo]:
        return [
            item if isinstance(item, SensorInfo) else SensorInfo(item["name"], item["hardware"], item["type"])
            for item in self._backend.list_available_sensors()
        ]

    def read_values(self, selectors) -> dict:
        """Return {selector.key: float} for every selector the backend could read."""
        active = [selector for selector in selectors if not selector.is_blank]
        if not active:
            return {}
        raw = self._backend.read_values(active) or {}
        return {key: float(value) for key, value in raw.items() if value is not None}

    def export_sensors(self, path):
        return self._backend.export_sensors(path)
