"""
续期推算测试
"""
from datetime import date

import pytest

from errors import InvalidPeriod
from lunar_calendar import LunarDate, lunar_to_solar
from models.subscription import Period, PeriodUnit
from recurrence import advance_lunar, advance_solar, advance_until_future

MONTHLY = Period(1, PeriodUnit.MONTH)
YEARLY = Period(1, PeriodUnit.YEAR)


@pytest.mark.parametrize('start, period, expected', [
    (date(2024, 1, 31), MONTHLY, date(2024, 2, 29)),
    (date(2023, 1, 31), MONTHLY, date(2023, 2, 28)),
    (date(2024, 2, 29), YEARLY, date(2025, 2, 28)),
    (date(2024, 12, 15), Period(2, PeriodUnit.MONTH), date(2025, 2, 15)),
    (date(2024, 2, 27), Period(3, PeriodUnit.DAY), date(2024, 3, 1)),
])
def test_advance_solar(start, period, expected):
    assert advance_solar(start, period) == expected


def test_advance_until_future_keeps_anchor_day():
    result, steps = advance_until_future(date(2024, 1, 31), MONTHLY, date(2024, 3, 15))
    assert result == date(2024, 3, 31)
    assert steps == 2


def test_advance_until_future_already_future():
    assert advance_until_future(date(2024, 5, 1), MONTHLY, date(2024, 3, 15)) == (date(2024, 5, 1), 0)


def test_advance_until_future_today_counts_as_future():
    assert advance_until_future(date(2024, 3, 15), MONTHLY, date(2024, 3, 15)) == (date(2024, 3, 15), 0)


@pytest.mark.parametrize('period', [Period(1, PeriodUnit.DAY), Period(7, PeriodUnit.DAY),
                                    MONTHLY, Period(3, PeriodUnit.MONTH), YEARLY])
def test_advance_until_future_is_monotonic(period):
    today = date(2024, 6, 10)
    result, steps = advance_until_future(date(2020, 8, 31), period, today)
    assert result >= today
    assert steps > 0
    previous = advance_solar(date(2020, 8, 31), period.scaled(steps - 1))
    assert previous < today


def test_period_rejects_non_positive_values():
    with pytest.raises(InvalidPeriod):
        Period(0, PeriodUnit.MONTH)
    with pytest.raises(InvalidPeriod):
        Period(-1, PeriodUnit.DAY)


def test_advance_lunar_by_month():
    assert advance_lunar(LunarDate(2024, 1, 1), MONTHLY) == LunarDate(2024, 2, 1)
    assert advance_lunar(LunarDate(2024, 12, 1), MONTHLY) == LunarDate(2025, 1, 1)


def test_advance_lunar_clamps_day():
    # 2024 年正月只有 29 天
    assert advance_lunar(LunarDate(2023, 12, 30), MONTHLY) == LunarDate(2024, 1, 29)


def test_advance_lunar_drops_leap_flag_when_target_year_has_other_leap():
    assert advance_lunar(LunarDate(2023, 2, 15, True), YEARLY) == LunarDate(2024, 2, 15, False)
    assert advance_lunar(LunarDate(2020, 4, 10, True), Period(3, PeriodUnit.YEAR)) == LunarDate(2023, 4, 10, False)


def test_advance_lunar_keeps_leap_flag_when_same_leap_month():
    # 2001 年与 2020 年都闰四月
    assert advance_lunar(LunarDate(2001, 4, 5, True), Period(19, PeriodUnit.YEAR)) == LunarDate(2020, 4, 5, True)


def test_advance_lunar_by_day_uses_solar_days():
    assert advance_lunar(LunarDate(2024, 1, 1), Period(10, PeriodUnit.DAY)) == LunarDate(2024, 1, 11)


def test_advance_until_future_lunar():
    result, steps = advance_until_future(LunarDate(2024, 1, 1), YEARLY, date(2024, 3, 1), lunar=True)
    assert result == LunarDate(2025, 1, 1)
    assert steps == 1
    assert lunar_to_solar(result) == date(2025, 1, 29)
