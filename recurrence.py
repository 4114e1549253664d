#!/usr/bin/env python3
"""
续期日期推算

公历按日/月/年字段运算（月末钳位），农历按年/月推进并处理闰月，
按日推进统一在公历上计算。
"""
from datetime import date, timedelta
from typing import Tuple, Union

from dateutil.relativedelta import relativedelta

from errors import RecurrenceLimitExceeded
from lunar_calendar import (
    LunarDate,
    leap_month_index,
    leap_month_length,
    lunar_to_solar,
    lunar_to_solar_strict,
    month_length,
    solar_date_to_lunar,
)
from models.subscription import Period, PeriodUnit
from logger import get_logger

logger = get_logger('recurrence')

# 防止异常数据导致死循环（1 天周期推进 200 年约 73000 步）
MAX_ADVANCE_STEPS = 100000


def advance_solar(d: date, period: Period) -> date:
    """
    公历日期加周期

    月/年溢出时钳到目标月最后一天，例如 1 月 31 日 + 1 个月 -> 2 月末。
    """
    if period.unit == PeriodUnit.DAY:
        return d + timedelta(days=period.value)
    if period.unit == PeriodUnit.MONTH:
        return d + relativedelta(months=period.value)
    return d + relativedelta(years=period.value)


def _clamp_lunar(year: int, month: int, day: int, is_leap: bool) -> LunarDate:
    """把日钳到目标月的最大天数，无法转换为公历时逐日回退"""
    max_day = leap_month_length(year) if is_leap else month_length(year, month)
    target_day = min(day, max_day)
    candidate = LunarDate(year, month, target_day, is_leap)
    while target_day > 0:
        candidate = LunarDate(year, month, target_day, is_leap)
        if lunar_to_solar(candidate) is not None:
            return candidate
        target_day -= 1
    logger.warning(f"农历日期 {year}-{month}-{day} 无法对齐到有效公历日期，返回最后候选 {candidate}")
    return candidate


def advance_lunar(lunar: LunarDate, period: Period) -> LunarDate:
    """
    农历日期加周期

    - 按年：年份加值，仅当新年份的闰月仍是该月时保留闰月标记
    - 按月：折算为自 1900 年起的绝对月数后加值再分解，闰月标记同上
    - 按日：转公历加天数后再转回农历
    """
    year, month, day, is_leap = lunar.year, lunar.month, lunar.day, lunar.is_leap

    if period.unit == PeriodUnit.DAY:
        solar = lunar_to_solar_strict(lunar)
        return solar_date_to_lunar(solar + timedelta(days=period.value))

    if period.unit == PeriodUnit.YEAR:
        year += period.value
    else:
        total_months = (year - 1900) * 12 + (month - 1) + period.value
        year = total_months // 12 + 1900
        month = total_months % 12 + 1

    is_leap = is_leap and leap_month_index(year) == month
    return _clamp_lunar(year, month, day, is_leap)


def advance_until_future(start: Union[date, LunarDate], period: Period, today: date,
                         lunar: bool = False) -> Tuple[Union[date, LunarDate], int]:
    """
    反复推进直到结果对应的公历日期不早于 today

    Args:
        start: 起始日期（公历 date 或 LunarDate）
        period: 续期周期（value >= 1）
        today: 时区本地的当前日期
        lunar: 是否按农历推进

    Returns:
        (result, steps): 推进后的日期（与 start 同类型）和推进次数

    Raises:
        RecurrenceLimitExceeded: 推进次数超过 MAX_ADVANCE_STEPS
    """
    if lunar:
        current = start
        steps = 0
        while lunar_to_solar_strict(current) < today:
            current = advance_lunar(current, period)
            steps += 1
            if steps > MAX_ADVANCE_STEPS:
                raise RecurrenceLimitExceeded(start, period, MAX_ADVANCE_STEPS)
        return current, steps

    # 公历以起始日为锚点计算第 n 期，避免逐期钳位导致日期漂移（1/31 -> 2/29 -> 3/31）
    result = start
    steps = 0
    while result < today:
        steps += 1
        result = advance_solar(start, period.scaled(steps))
        if steps > MAX_ADVANCE_STEPS:
            raise RecurrenceLimitExceeded(start, period, MAX_ADVANCE_STEPS)
    return result, steps
