#!/usr/bin/env python3
"""
农历（阴历）与公历互转

数据表覆盖 1900-2100 年，每年一个 20 位整数：
- bit 0-3: 闰月月份（0 表示无闰月）
- bit 4-15: 正月到腊月是否为大月（1 -> 30 天，0 -> 29 天），正月在最高位
- bit 16: 闰月是否为大月
"""
import calendar
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Optional

from errors import LunarInverseFailure, LunarRangeError
from logger import get_logger

logger = get_logger('lunar_calendar')

MIN_YEAR = 1900
MAX_YEAR = 2100

# 农历正月初一 1900 年对应公历 1900-01-31
BASE_DATE = date(1900, 1, 31)

LUNAR_INFO = (
    0x04bd8, 0x04ae0, 0x0a570, 0x054d5, 0x0d260, 0x0d950, 0x16554, 0x056a0, 0x09ad0, 0x055d2,  # 1900-1909
    0x04ae0, 0x0a5b6, 0x0a4d0, 0x0d250, 0x1d255, 0x0b540, 0x0d6a0, 0x0ada2, 0x095b0, 0x14977,  # 1910-1919
    0x04970, 0x0a4b0, 0x0b4b5, 0x06a50, 0x06d40, 0x1ab54, 0x02b60, 0x09570, 0x052f2, 0x04970,  # 1920-1929
    0x06566, 0x0d4a0, 0x0ea50, 0x06e95, 0x05ad0, 0x02b60, 0x186e3, 0x092e0, 0x1c8d7, 0x0c950,  # 1930-1939
    0x0d4a0, 0x1d8a6, 0x0b550, 0x056a0, 0x1a5b4, 0x025d0, 0x092d0, 0x0d2b2, 0x0a950, 0x0b557,  # 1940-1949
    0x06ca0, 0x0b550, 0x15355, 0x04da0, 0x0a5b0, 0x14573, 0x052b0, 0x0a9a8, 0x0e950, 0x06aa0,  # 1950-1959
    0x0aea6, 0x0ab50, 0x04b60, 0x0aae4, 0x0a570, 0x05260, 0x0f263, 0x0d950, 0x05b57, 0x056a0,  # 1960-1969
    0x096d0, 0x04dd5, 0x04ad0, 0x0a4d0, 0x0d4d4, 0x0d250, 0x0d558, 0x0b540, 0x0b6a0, 0x195a6,  # 1970-1979
    0x095b0, 0x049b0, 0x0a974, 0x0a4b0, 0x0b27a, 0x06a50, 0x06d40, 0x0af46, 0x0ab60, 0x09570,  # 1980-1989
    0x04af5, 0x04970, 0x064b0, 0x074a3, 0x0ea50, 0x06b58, 0x055c0, 0x0ab60, 0x096d5, 0x092e0,  # 1990-1999
    0x0c960, 0x0d954, 0x0d4a0, 0x0da50, 0x07552, 0x056a0, 0x0abb7, 0x025d0, 0x092d0, 0x0cab5,  # 2000-2009
    0x0a950, 0x0b4a0, 0x0baa4, 0x0ad50, 0x055d9, 0x04ba0, 0x0a5b0, 0x15176, 0x052b0, 0x0a930,  # 2010-2019
    0x07954, 0x06aa0, 0x0ad50, 0x05b52, 0x04b60, 0x0a6e6, 0x0a4e0, 0x0d260, 0x0ea65, 0x0d530,  # 2020-2029
    0x05aa0, 0x076a3, 0x096d0, 0x04bd7, 0x04ad0, 0x0a4d0, 0x1d0b6, 0x0d250, 0x0d520, 0x0dd45,  # 2030-2039
    0x0b5a0, 0x056d0, 0x055b2, 0x049b0, 0x0a577, 0x0a4b0, 0x0aa50, 0x1b255, 0x06d20, 0x0ada0,  # 2040-2049
    0x14b63, 0x09370, 0x049f8, 0x04970, 0x064b0, 0x168a6, 0x0ea50, 0x06b20, 0x1a6c4, 0x0aae0,  # 2050-2059
    0x0a2e0, 0x0d2e3, 0x0c960, 0x0d557, 0x0d4a0, 0x0da50, 0x05d55, 0x056a0, 0x0a6d0, 0x055d4,  # 2060-2069
    0x052d0, 0x0a9b8, 0x0a950, 0x0b4a0, 0x0b6a6, 0x0ad50, 0x055a0, 0x0aba4, 0x0a5b0, 0x052b0,  # 2070-2079
    0x0b273, 0x06930, 0x07337, 0x06aa0, 0x0ad50, 0x14b55, 0x04b60, 0x0a570, 0x054e4, 0x0d160,  # 2080-2089
    0x0e968, 0x0d520, 0x0daa0, 0x16aa6, 0x056d0, 0x04ae0, 0x0a9d4, 0x0a2d0, 0x0d150, 0x0f252,  # 2090-2099
    0x0d520,  # 2100
)

HEAVENLY_STEMS = ('甲', '乙', '丙', '丁', '戊', '己', '庚', '辛', '壬', '癸')
EARTHLY_BRANCHES = ('子', '丑', '寅', '卯', '辰', '巳', '午', '未', '申', '酉', '戌', '亥')
MONTH_NAMES = ('正', '二', '三', '四', '五', '六', '七', '八', '九', '十', '冬', '腊')
DAY_NAMES = (
    '初一', '初二', '初三', '初四', '初五', '初六', '初七', '初八', '初九', '初十',
    '十一', '十二', '十三', '十四', '十五', '十六', '十七', '十八', '十九', '二十',
    '廿一', '廿二', '廿三', '廿四', '廿五', '廿六', '廿七', '廿八', '廿九', '三十',
)


@dataclass(frozen=True)
class LunarDate:
    """农历日期，is_leap 仅在 month 等于当年闰月序号时为 True"""
    year: int
    month: int
    day: int
    is_leap: bool = False

    @property
    def year_str(self) -> str:
        """天干地支纪年，如 甲辰年"""
        return HEAVENLY_STEMS[(self.year - 4) % 10] + EARTHLY_BRANCHES[(self.year - 4) % 12] + '年'

    @property
    def month_str(self) -> str:
        return ('闰' if self.is_leap else '') + MONTH_NAMES[self.month - 1] + '月'

    @property
    def day_str(self) -> str:
        return DAY_NAMES[self.day - 1]

    @property
    def full_str(self) -> str:
        return self.year_str + self.month_str + self.day_str

    def __str__(self) -> str:
        leap = '闰' if self.is_leap else ''
        return f"{self.year}-{leap}{self.month:02d}-{self.day:02d}"


def _year_info(year: int) -> int:
    if year < MIN_YEAR or year > MAX_YEAR:
        raise LunarRangeError(year)
    return LUNAR_INFO[year - MIN_YEAR]


def leap_month_index(year: int) -> int:
    """闰月月份，0 表示当年无闰月"""
    return _year_info(year) & 0xf


def leap_month_length(year: int) -> int:
    """闰月天数（29/30），无闰月返回 0"""
    if leap_month_index(year):
        return 30 if _year_info(year) & 0x10000 else 29
    return 0


def month_length(year: int, month: int) -> int:
    """普通月天数（29/30）"""
    if month < 1 or month > 12:
        raise ValueError(f"无效的农历月份: {month}")
    return 30 if _year_info(year) & (0x10000 >> month) else 29


@lru_cache(maxsize=None)
def year_length(year: int) -> int:
    """农历年总天数（含闰月）"""
    info = _year_info(year)
    total = 348
    bit = 0x8000
    while bit > 0x8:
        if info & bit:
            total += 1
        bit >>= 1
    return total + leap_month_length(year)


def solar_to_lunar(year: int, month: int, day: int) -> LunarDate:
    """
    公历转农历

    Args:
        year: 公历年（1900-2100）
        month: 公历月
        day: 公历日

    Returns:
        LunarDate: 对应的农历日期

    Raises:
        LunarRangeError: 年份超出 1900-2100，或早于 1900-01-31
        ValueError: 公历日期本身无效
    """
    if year < MIN_YEAR or year > MAX_YEAR:
        raise LunarRangeError(year)

    offset = (date(year, month, day) - BASE_DATE).days
    if offset < 0:
        raise LunarRangeError(year, f"日期早于农历表起点 {BASE_DATE.isoformat()}: {year}-{month:02d}-{day:02d}")

    # 逐年扣减
    lunar_year = MIN_YEAR
    temp = 0
    while lunar_year <= MAX_YEAR and offset > 0:
        temp = year_length(lunar_year)
        offset -= temp
        lunar_year += 1

    if offset < 0:
        offset += temp
        lunar_year -= 1

    # 逐月扣减，闰月作为同号月之后的额外一个月
    leap = leap_month_index(lunar_year)
    is_leap = False
    lunar_month = 1
    while lunar_month < 13 and offset > 0:
        if leap > 0 and lunar_month == leap + 1 and not is_leap:
            lunar_month -= 1
            is_leap = True
            temp = leap_month_length(lunar_year)
        else:
            temp = month_length(lunar_year, lunar_month)

        if is_leap and lunar_month == leap + 1:
            is_leap = False
        offset -= temp
        lunar_month += 1

    # 恰好落在闰月接缝处
    if offset == 0 and leap > 0 and lunar_month == leap + 1:
        if is_leap:
            is_leap = False
        else:
            is_leap = True
            lunar_month -= 1

    if offset < 0:
        offset += temp
        lunar_month -= 1

    return LunarDate(year=lunar_year, month=lunar_month, day=offset + 1, is_leap=is_leap)


@lru_cache(maxsize=4096)
def lunar_to_solar(lunar: LunarDate) -> Optional[date]:
    """
    农历转公历（遍历法）

    在 [year-1, year+1] 三年内逐日转换比对，返回第一个完全匹配的公历日期。
    无匹配返回 None，调用方应视为内部一致性错误。
    """
    for y in range(lunar.year - 1, lunar.year + 2):
        if y < MIN_YEAR or y > MAX_YEAR:
            continue
        for m in range(1, 13):
            for d in range(1, calendar.monthrange(y, m)[1] + 1):
                try:
                    candidate = solar_to_lunar(y, m, d)
                except LunarRangeError:
                    continue
                if candidate == lunar:
                    return date(y, m, d)
    return None


def lunar_to_solar_strict(lunar: LunarDate) -> date:
    """农历转公历，无匹配时抛 LunarInverseFailure"""
    solar = lunar_to_solar(lunar)
    if solar is None:
        logger.error(f"农历转公历失败: {lunar}")
        raise LunarInverseFailure(lunar)
    return solar


def solar_date_to_lunar(d: date) -> LunarDate:
    """date 对象转农历"""
    return solar_to_lunar(d.year, d.month, d.day)
