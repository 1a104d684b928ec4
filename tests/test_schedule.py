"""Tests for opening-hours evaluation"""

from datetime import datetime, timezone

import pytest

from resource_engine.directory.schedule import is_open_now, local_time, next_available_time


@pytest.fixture
def resources_by_id(seed_resources):
    return {r.id: r for r in seed_resources}


@pytest.fixture
def hub_schedule(resources_by_id):
    return resources_by_id["dormitory_support_hub"].availability.schedule


@pytest.fixture
def circle_schedule(resources_by_id):
    return resources_by_id["peer_filipino_circle"].availability.schedule


# 2025-11-17 is a Monday
MONDAY = datetime(2025, 11, 17)


@pytest.mark.parametrize("hour,expected", [
    (8, False),
    (9, True),
    (12, True),
    (17, True),
    (18, False),
    (20, True),
    (22, False),
])
def test_hub_open_now(hub_schedule, hour, expected):
    """Test weekday windows with inclusive bounds"""
    assert is_open_now(hub_schedule, MONDAY.replace(hour=hour)) is expected


def test_later_window_today(hub_schedule):
    """Test a gap between windows reports the next window today"""
    assert next_available_time(hub_schedule, MONDAY.replace(hour=18)) == "Today at 19:00"


def test_after_last_window_rolls_to_tomorrow(hub_schedule):
    assert next_available_time(hub_schedule, MONDAY.replace(hour=22)) == "Tuesday at 09:00"


def test_friday_night_rolls_to_weekend(hub_schedule):
    """Test the first window of the next day is reported"""
    friday = datetime(2025, 11, 21, 22, 0)

    assert next_available_time(hub_schedule, friday) == "Saturday at 10:00"


def test_closed_day(circle_schedule):
    """Test a day marked closed is closed and the next open day is found"""
    now = MONDAY.replace(hour=14)

    assert is_open_now(circle_schedule, now) is False
    assert next_available_time(circle_schedule, now) == "Sunday at 13:00"


def test_missing_day_is_closed(circle_schedule):
    """Test days absent from the schedule are closed"""
    assert is_open_now(circle_schedule, datetime(2025, 11, 19, 14, 0)) is False


def test_empty_schedule():
    """Test resources without hours never open"""
    assert is_open_now([], MONDAY) is False
    assert next_available_time([], MONDAY) is None


def test_aware_datetime_converted_to_local():
    """Test aware datetimes are converted to the resource timezone"""
    utc = datetime(2025, 11, 17, 4, 0, tzinfo=timezone.utc)

    local = local_time(utc, "Asia/Singapore")

    assert (local.hour, local.minute) == (12, 0)


def test_naive_datetime_taken_as_local():
    assert local_time(MONDAY, "Asia/Singapore") is MONDAY


def test_open_now_across_timezones(hub_schedule):
    """Test the same instant is open in Singapore"""
    utc = datetime(2025, 11, 17, 4, 0, tzinfo=timezone.utc)

    assert is_open_now(hub_schedule, local_time(utc, "Asia/Singapore")) is True
