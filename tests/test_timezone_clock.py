"""
时区日历工具测试
"""
from datetime import date, datetime, timezone

from conftest import utc
from timezone_clock import (
    combine_local,
    current_hour,
    days_until_date,
    format_in_timezone,
    format_timezone_display,
    hours_between,
    is_valid_timezone,
    local_midnight_instant,
    resolve_timezone,
    whole_days_between,
)


def test_local_midnight_instant_uses_local_calendar_date():
    # 上海 2024-03-15 00:30
    instant = utc(2024, 3, 14, 16, 30)
    assert local_midnight_instant(instant, 'Asia/Shanghai') == utc(2024, 3, 15)
    assert local_midnight_instant(instant, 'UTC') == utc(2024, 3, 14)


def test_whole_days_between_depends_on_timezone():
    now = utc(2024, 3, 14, 16, 30)
    expiry = utc(2024, 3, 15, 15, 0)
    assert whole_days_between(now, expiry, 'Asia/Shanghai') == 0
    assert whole_days_between(now, expiry, 'UTC') == 1


def test_whole_days_between_is_negative_for_past():
    assert whole_days_between(utc(2024, 3, 15), utc(2024, 3, 10, 23), 'UTC') == -5


def test_days_until_date_across_dst():
    now = datetime(2024, 3, 9, 12, tzinfo=timezone.utc)
    assert days_until_date(date(2024, 3, 12), now, 'America/New_York') == 3


def test_hours_between_ignores_timezone():
    assert hours_between(utc(2024, 3, 15), utc(2024, 3, 15, 12, 30)) == 12.5
    assert hours_between(utc(2024, 3, 15, 2), utc(2024, 3, 15)) == -2


def test_current_hour_is_two_digits():
    assert current_hour(utc(2024, 3, 15, 1, 59), 'UTC') == '01'
    assert current_hour(utc(2024, 3, 15, 1, 59), 'Asia/Shanghai') == '09'


def test_invalid_timezone_falls_back_to_utc():
    assert not is_valid_timezone('Mars/Olympus')
    assert resolve_timezone('Mars/Olympus') is timezone.utc
    assert is_valid_timezone('Asia/Shanghai')
    assert is_valid_timezone('utc')


def test_combine_local_keeps_wall_time():
    wall = datetime(2024, 1, 31, 8, 0)
    assert combine_local(date(2024, 3, 31), wall, 'Asia/Shanghai') == utc(2024, 3, 31, 0, 0)


def test_format_in_timezone():
    instant = utc(2024, 3, 31, 16)
    assert format_in_timezone(instant, 'Asia/Shanghai', 'date') == '2024/04/01'
    assert format_in_timezone(instant, 'UTC', 'datetime') == '2024/03/31 16:00:00'


def test_format_timezone_display():
    assert format_timezone_display('Asia/Shanghai') == '中国标准时间 (UTC+8)'
    assert format_timezone_display('America/New_York', utc(2024, 1, 15)) == '美国东部时间 (UTC-5)'
    assert format_timezone_display('UTC') == '世界标准时间 (UTC+0)'
