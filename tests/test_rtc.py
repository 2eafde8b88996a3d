import time

import pytest

from asiair.rtc import RTC


def test_set_and_get_time_basic():
    rtc = RTC()
    rtc.set_time(2025, 5, 6, 18, 44, 31, "America/Costa_Rica")
    time.sleep(1.0)
    now = rtc.now()
    assert now.year == 2025
    assert now.month == 5
    assert now.day == 6
    assert now.hour == 18
    assert now.minute == 44
    assert now.second >= 32


def test_time_advances():
    rtc = RTC()
    rtc.set_time(2025, 1, 1, 0, 0, 0, "UTC")
    first = rtc.now()
    time.sleep(0.5)
    later = rtc.now()
    assert later > first


def test_invalid_timezone():
    rtc = RTC()
    with pytest.raises(ValueError, match="Invalid timezone"):
        rtc.set_time(2025, 1, 1, 0, 0, 0, "Invalid/Zone")


def test_invalid_date():
    rtc = RTC()
    with pytest.raises(ValueError, match="Invalid date"):
        rtc.set_time(2025, 2, 30, 0, 0, 0, "UTC")


def test_invalid_time():
    rtc = RTC()
    with pytest.raises(ValueError, match="Invalid time"):
        rtc.set_time(2025, 1, 1, 25, 0, 0, "UTC")


def test_nonexistent_local_time():
    rtc = RTC()
    with pytest.raises(ValueError, match="Ambiguous or nonexistent"):
        rtc.set_time(2025, 3, 9, 2, 30, 0, "America/New_York")


def test_failed_set_keeps_previous_time():
    rtc = RTC()
    rtc.set_time(2025, 1, 1, 0, 0, 0, "UTC")
    with pytest.raises(ValueError):
        rtc.set_time(2025, 1, 1, 0, 0, 0, "Invalid/Zone")
    assert rtc.now().year == 2025