from collections import namedtuple
from datetime import datetime, time

from django.conf import settings
from django.utils import timezone

BusinessStatus = namedtuple("BusinessStatus", ["is_open", "today_hours"])

CLOSED_TODAY = "Closed today"
HOURS_NOT_CONFIGURED = "Hours not configured"


def storefront_day_of_week(moment):
    """Python counts Monday as 0; schedules count Sunday as 0."""
    return (moment.weekday() + 1) % 7


def format_time(value):
    return value.strftime("%H:%M") if value else ""


def parse_time_string(value):
    """
    Parse 'HH:MM' (or 'HH:MM:SS') into a time.
    Returns None for blank input, raises ValueError for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time '{value}', expected HH:MM")


def _trimmed_window(schedule):
    """(open, close) to the minute, or None when the row does not describe an open day."""
    if schedule is None or not schedule.is_open or not schedule.open_time or not schedule.close_time:
        return None
    return (
        schedule.open_time.replace(second=0, microsecond=0),
        schedule.close_time.replace(second=0, microsecond=0),
    )


def get_business_status(hours, now=None):
    """
    Work out whether a restaurant is open right now.

    ``hours`` is an iterable of BusinessHour rows. A restaurant with no
    schedule at all is treated as always open. Opening and closing minutes
    are both inclusive. A closing time earlier than the opening time means
    the shift runs past midnight; the hours after midnight belong to the day
    the shift opened, so they are read from the previous day's row.
    """
    hours = list(hours)
    if not hours:
        return BusinessStatus(True, HOURS_NOT_CONFIGURED)

    if now is None:
        now = timezone.localtime()
    elif timezone.is_aware(now):
        now = timezone.localtime(now)

    today = storefront_day_of_week(now)
    yesterday = (today - 1) % 7
    by_day = {h.day_of_week: h for h in hours}
    schedule = by_day.get(today)
    current = now.time().replace(second=0, microsecond=0)

    is_open = False
    carried = _trimmed_window(by_day.get(yesterday))
    if carried and carried[1] < carried[0] and current <= carried[1]:
        is_open = True

    if schedule is None or not schedule.is_open:
        return BusinessStatus(is_open, CLOSED_TODAY)

    window = _trimmed_window(schedule)
    if window is None:
        return BusinessStatus(is_open, HOURS_NOT_CONFIGURED)

    open_time, close_time = window
    if close_time >= open_time:
        is_open = is_open or open_time <= current <= close_time
    else:
        is_open = is_open or current >= open_time

    return BusinessStatus(is_open, f"{format_time(open_time)} - {format_time(close_time)}")


def default_business_hours():
    """One open row per weekday using the configured default window."""
    config = settings.STOREFRONT_SETTINGS
    open_time = parse_time_string(config["DEFAULT_OPEN_TIME"])
    close_time = parse_time_string(config["DEFAULT_CLOSE_TIME"])
    return [
        {"day_of_week": day, "is_open": True, "open_time": open_time, "close_time": close_time}
        for day in range(7)
    ]


def serialize_business_hour(hour):
    return {
        "day_of_week": hour.day_of_week,
        "day_name": hour.get_day_of_week_display(),
        "is_open": hour.is_open,
        "open_time": format_time(hour.open_time),
        "close_time": format_time(hour.close_time),
    }
