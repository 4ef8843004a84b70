import logging

LOGGER = logging.getLogger("gamesense_oled")

MAX_LINE_CHARS = 20
MISSING_VALUE_TEXT = "-"
BLANK_LINE = " "


def display_value(selector, raw_value: float) -> float:
    """SmallData sensors report MB; a GB suffix asks for the value in GB."""
    if selector.sensor_type.lower() == "smalldata" and selector.suffix.strip().lower() == "gb":
        return raw_value / 1024.0
    return raw_value


def format_value(selector, values) -> str | None:
    """Return the value text for ``selector``, or None when no reading exists."""
    raw_value = values.get(selector.key)
    if raw_value is None:
        return None
    return f"{display_value(selector, float(raw_value)):.{int(selector.decimal_places)}f}"


def compute_column_widths(selectors, values) -> tuple:
    """Return (prefix_width, value_width) shared by every line of the page."""
    active = [selector for selector in selectors if not selector.is_blank]
    prefix_width = max((len(selector.label) for selector in active), default=0)
    value_width = max(
        (len(format_value(selector, values) or MISSING_VALUE_TEXT) for selector in active),
        default=0,
    )
    return prefix_width, value_width


def fit_line(text: str, max_chars: int = MAX_LINE_CHARS) -> str:
    return text[:max_chars]


def format_line(selector, values, prefix_width: int, value_width: int) -> str:
    if selector.is_blank:
        return BLANK_LINE
    value_text = format_value(selector, values)
    if value_text is None:
        LOGGER.warning(
            "Sensor '%s' could not be read. The program may need to be run with elevated privileges.",
            selector.name,
        )
        value_text = MISSING_VALUE_TEXT
    return fit_line(f"{selector.label.ljust(prefix_width)}{value_text.rjust(value_width)}{selector.suffix}")


def format_page_lines(selectors, values) -> list[str]:
    prefix_width, value_width = compute_column_widths(selectors, values)
    return [format_line(selector, values, prefix_width, value_width) for selector in selectors]
