import logging

import pytest

from gamesense_oled.models import Page, SensorInfo, SensorSelector
from gamesense_oled.pages import (
    assign_key_instances,
    find_missing_sensors,
    has_active_sensors,
    normalize_page,
    normalize_pages,
)


def _sel(name, hardware="CPU", sensor_type="Load"):
    return SensorSelector(name=name, hardware=hardware, sensor_type=sensor_type)


@pytest.mark.parametrize("count", [0, 1, 2, 3, 5])
def test_pages_always_hold_exactly_two_selectors(count):
    page = Page(duration_ms=1000, sensors=tuple(_sel(f"S{i}") for i in range(count)))

    normalized = normalize_page(page, 1)

    assert len(normalized.sensors) == 2
    active = [sensor.name for sensor in normalized.sensors if not sensor.is_blank]
    assert active == [f"S{i}" for i in range(min(count, 2))]


def test_extra_selectors_are_dropped_with_warning(caplog):
    page = Page(duration_ms=1000, sensors=(_sel("A"), _sel("B"), _sel("C")))

    with caplog.at_level(logging.WARNING, logger="gamesense_oled"):
        normalize_pages([page])

    assert "Page 1: More than 2 sensors defined" in caplog.text


def test_duplicate_selectors_get_contiguous_key_instances():
    sensors = (_sel("Core"), _sel("Other"), _sel("core"), _sel("Core"))

    numbered = assign_key_instances(sensors)

    assert [s.key_instance for s in numbered] == [1, 1, 2, 3]
    assert len({s.key for s in numbered}) == 4


def test_key_instances_restart_on_each_page():
    pages = [Page(duration_ms=1000, sensors=(_sel("Core"), _sel("Core"))), Page(duration_ms=1000, sensors=(_sel("Core"),))]

    first, second = normalize_pages(pages)

    assert [s.key_instance for s in first.sensors] == [1, 2]
    assert second.sensors[0].key_instance == 1


def test_normalization_keeps_page_attributes():
    page = Page(duration_ms=2500, icon_id=12, sensors=(_sel("A"),))

    normalized = normalize_page(page, 1)

    assert normalized.duration_ms == 2500
    assert normalized.icon_id == 12
    assert page.sensors == (_sel("A"),)


def test_has_active_sensors():
    blank_page = Page(duration_ms=1000, sensors=(SensorSelector(name="  "),))

    assert has_active_sensors([]) is False
    assert has_active_sensors([blank_page]) is False
    assert has_active_sensors([blank_page, Page(duration_ms=1000, sensors=(_sel("A"),))]) is True


def test_find_missing_sensors_matches_case_insensitively_and_skips_blanks():
    available = [SensorInfo("CPU Total", "CPU", "Load")]
    pages = [Page(duration_ms=1000, sensors=(_sel("cpu total", "cpu", "LOAD"), _sel("GPU Core", "GPU"), SensorSelector()))]

    missing = find_missing_sensors(pages, available)

    assert [sensor.name for sensor in missing] == ["GPU Core"]
