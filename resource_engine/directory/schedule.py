"""
Opening-hours evaluation for resource schedules.
"""

from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo

from resource_engine.recommendations.resource_catalog import DayOfWeek, DaySchedule, TimeSlot

# datetime.weekday() order
WEEKDAY_ORDER = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
]


def local_time(now: datetime, timezone: str) -> datetime:
    """Convert an aware datetime to a timezone; naive datetimes are taken as already local"""
    if now.tzinfo is None:
        return now
    return now.astimezone(ZoneInfo(timezone))


def day_schedule(schedule: List[DaySchedule], when: datetime) -> Optional[DaySchedule]:
    day = WEEKDAY_ORDER[when.weekday()]
    for entry in schedule:
        if entry.day == day:
            return entry
    return None


def _sorted_slots(entry: DaySchedule) -> List[TimeSlot]:
    return sorted(entry.time_slots, key=lambda s: s.start)


def is_open_now(schedule: List[DaySchedule], now: datetime) -> bool:
    """
    Whether local time falls inside one of today's windows.

    A day missing from the schedule, marked closed, or without windows is
    closed. Window bounds are inclusive.
    """
    entry = day_schedule(schedule, now)
    if entry is None or not entry.is_open:
        return False

    current = now.strftime("%H:%M")
    return any(slot.start <= current <= slot.end for slot in entry.time_slots)


def next_available_time(schedule: List[DaySchedule], now: datetime) -> Optional[str]:
    """
    Describe the next opening within a week.

    Today only counts if a window starts later than the current time;
    later days report their first window.

    Returns:
        "Today at HH:MM", "{Weekday} at HH:MM", or None when nothing opens
        in the next seven days
    """
    current = now.strftime("%H:%M")

    for offset in range(7):
        when = now + timedelta(days=offset)
        entry = day_schedule(schedule, when)
        if entry is None or not entry.is_open or not entry.time_slots:
            continue

        slots = _sorted_slots(entry)
        if offset == 0:
            upcoming = [slot for slot in slots if slot.start > current]
            if upcoming:
                return f"Today at {upcoming[0].start}"
            continue

        return f"{entry.day.value.capitalize()} at {slots[0].start}"

    return None
