import logging
from dataclasses import replace

from gamesense_oled.models import BLANK_SELECTOR, Page

LOGGER = logging.getLogger("gamesense_oled")
SENSORS_PER_PAGE = 2


def assign_key_instances(sensors) -> tuple:
    """Number duplicate name/hardware/type selectors 1, 2, ... in page order."""
    counters = {}
    numbered = []
    for sensor in sensors:
        counters[sensor.base_key] = counters.get(sensor.base_key, 0) + 1
        numbered.append(replace(sensor, key_instance=counters[sensor.base_key]))
    return tuple(numbered)


def normalize_page(page: Page, page_number: int) -> Page:
    sensors = assign_key_instances(page.sensors)
    if len(sensors) > SENSORS_PER_PAGE:
        LOGGER.warning(
            "Page %s: More than %s sensors defined, only the first %s will be used.",
            page_number,
            SENSORS_PER_PAGE,
            SENSORS_PER_PAGE,
        )
        sensors = sensors[:SENSORS_PER_PAGE]
    sensors = sensors + (BLANK_SELECTOR,) * (SENSORS_PER_PAGE - len(sensors))
    return replace(page, sensors=sensors)


def normalize_pages(pages) -> tuple:
    return tuple(normalize_page(page, number) for number, page in enumerate(pages, start=1))


def has_active_sensors(pages) -> bool:
    return any(not sensor.is_blank for page in pages for sensor in page.sensors)


def find_missing_sensors(pages, available) -> list:
    """Return configured, non-blank selectors that the hardware catalog does not offer."""
    missing = []
    for page in pages:
        for sensor in page.sensors:
            if sensor.is_blank:
                continue
            if not any(info.matches(sensor) for info in available):
                missing.append(sensor)
    return missing
