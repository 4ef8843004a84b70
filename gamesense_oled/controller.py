import logging
from time import monotonic, sleep

from gamesense_oled.models import BroadcastState
from gamesense_oled.pages import find_missing_sensors, has_active_sensors, normalize_pages
from gamesense_oled.render.text_lines import format_page_lines
from gamesense_oled.schedule import PageSchedule

LOGGER = logging.getLogger("gamesense_oled")


class BroadcastController:
    def __init__(
        self,
        settings,
        sensor_service=None,
        gamesense_client=None,
        sleep_fn=None,
        clock_fn=None,
    ):
        self.settings = settings

        if sensor_service is None:
            from gamesense_oled.services.sensor_service import SensorService
            sensor_service = SensorService()
        if gamesense_client is None:
            from gamesense_oled.services.gamesense_client import GameSenseClient
            gamesense_client = GameSenseClient(
                settings.game_name,
                settings.game_display_name,
                address=settings.gamesense_address,
            )

        self.sensor_service = sensor_service
        self.gamesense_client = gamesense_client
        self.sleep_fn = sleep_fn or sleep
        self.clock_fn = clock_fn or monotonic
        self.state = BroadcastState.INITIALIZING
        self.pages = ()
        self.event_names = ()
        self.schedule = PageSchedule()

    @staticmethod
    def event_name_for(page_index: int) -> str:
        return f"OLED_{page_index + 1}"

    def check_configured_sensors(self) -> list:
        available = self.sensor_service.list_available_sensors()
        missing = find_missing_sensors(self.settings.pages, available)
        for sensor in missing:
            LOGGER.warning(
                "Sensor not found: Name='%s', Hardware='%s', Type='%s'",
                sensor.name,
                sensor.hardware,
                sensor.sensor_type,
            )
        return missing

    def prepare_pages(self) -> bool:
        """Cross-check sensors and normalize pages; False means there is nothing to show."""
        self.state = BroadcastState.INITIALIZING
        self.check_configured_sensors()
        if not self.settings.pages or not has_active_sensors(self.settings.pages):
            LOGGER.warning("No pages or sensors configured in settings.")
            self.state = BroadcastState.STOPPED
            return False
        self.pages = normalize_pages(self.settings.pages)
        self.event_names = tuple(self.event_name_for(index) for index in range(len(self.pages)))
        return True

    def register(self) -> None:
        self.state = BroadcastState.REGISTERING
        client = self.gamesense_client
        client.set_retry_interval_ms(self.settings.gamesense_retry_interval_ms)
        client.set_heartbeat_interval_ms(self.settings.gamesense_heartbeat_interval_ms)
        client.register_game_metadata()
        client.start_heartbeat()
        client.register_oled_events(
            [(event_name, page.icon_id) for event_name, page in zip(self.event_names, self.pages)]
        )
        self.schedule = PageSchedule(last_switch_at=self.clock_fn())
        self.state = BroadcastState.RUNNING
        LOGGER.info("Registered %s page(s); broadcasting every %sms.", len(self.pages), self.settings.update_interval_ms)

    def run_once(self) -> None:
        self.schedule = self.schedule.advance(self.clock_fn(), self.pages)
        index = self.schedule.index
        page = self.pages[index]
        try:
            values = self.sensor_service.read_values(page.sensors)
            lines = format_page_lines(page.sensors, values)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Reading sensors for page %s failed (%s); skipping this update.", index + 1, exc)
        else:
            LOGGER.debug("Page %s/%s: %s", index + 1, len(self.pages), ", ".join(lines))
            self.gamesense_client.send_oled_display(self.event_names[index], lines)
        self.sleep_fn(self.settings.update_interval_ms / 1000.0)

    def run(self) -> bool:
        """Broadcast forever; returns False only when startup finds no usable pages."""
        LOGGER.info("Starting GameSense OLED broadcast.")
        if not self.prepare_pages():
            return False
        try:
            self.register()
            while True:
                self.run_once()
        finally:
            self.state = BroadcastState.STOPPED
            self.gamesense_client.close()
