#!/usr/bin/env python3
"""
时区日历工具

“剩余天数”统一按时区本地日历日计算：把本地年月日重新编码为同一天 UTC 零点（代理午夜），
两个代理瞬时相减即可得到准确的日历天数差。“剩余小时”直接按瞬时相减。
"""
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from logger import get_logger

logger = get_logger('timezone_clock')

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# 时区中文名称映射
TIMEZONE_NAMES = {
    'UTC': '世界标准时间',
    'Asia/Shanghai': '中国标准时间',
    'Asia/Hong_Kong': '香港时间',
    'Asia/Taipei': '台北时间',
    'Asia/Singapore': '新加坡时间',
    'Asia/Tokyo': '日本时间',
    'Asia/Seoul': '韩国时间',
    'America/New_York': '美国东部时间',
    'America/Los_Angeles': '美国太平洋时间',
    'America/Chicago': '美国中部时间',
    'America/Denver': '美国山地时间',
    'Europe/London': '英国时间',
    'Europe/Paris': '巴黎时间',
    'Europe/Berlin': '柏林时间',
    'Europe/Moscow': '莫斯科时间',
    'Australia/Sydney': '悉尼时间',
    'Australia/Melbourne': '墨尔本时间',
    'Pacific/Auckland': '奥克兰时间',
}

TimezoneLike = Union[str, tzinfo, None]


def is_valid_timezone(name: str) -> bool:
    """检查时区名称是否有效"""
    if not name:
        return False
    if name.upper() == 'UTC':
        return True
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def resolve_timezone(tz: TimezoneLike) -> tzinfo:
    """时区名称转 tzinfo，无效时回退 UTC"""
    if tz is None:
        return timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    if tz.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"无效的时区: {tz}，使用 UTC")
        return timezone.utc


def _ensure_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_local(instant: datetime, tz: TimezoneLike) -> datetime:
    """UTC 瞬时转为时区本地时间"""
    return _ensure_aware(instant).astimezone(resolve_timezone(tz))


def local_date(instant: datetime, tz: TimezoneLike) -> date:
    """瞬时对应的时区本地日历日期"""
    return to_local(instant, tz).date()


def date_midnight_instant(d: date) -> datetime:
    """日历日期编码为当天 UTC 零点"""
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def local_midnight_instant(instant: datetime, tz: TimezoneLike) -> datetime:
    """
    代理午夜瞬时：取时区本地的年月日，重新编码为 UTC 当天 00:00:00

    只用于做差，不代表真实的本地午夜。
    """
    return date_midnight_instant(local_date(instant, tz))


def whole_days_between(a: datetime, b: datetime, tz: TimezoneLike) -> int:
    """a 到 b 的日历天数差（按时区本地日期）"""
    delta = local_midnight_instant(b, tz) - local_midnight_instant(a, tz)
    return round(delta.total_seconds() / SECONDS_PER_DAY)


def days_until_date(target: date, now: datetime, tz: TimezoneLike) -> int:
    """当前时刻到某个本地日历日期的天数差"""
    delta = date_midnight_instant(target) - local_midnight_instant(now, tz)
    return round(delta.total_seconds() / SECONDS_PER_DAY)


def hours_between(a: datetime, b: datetime) -> float:
    """a 到 b 的小时数，不做时区调整"""
    return (_ensure_aware(b) - _ensure_aware(a)).total_seconds() / SECONDS_PER_HOUR


def current_hour(now: datetime, tz: TimezoneLike) -> str:
    """时区本地的两位小时字符串，如 08"""
    return f"{to_local(now, tz).hour:02d}"


def combine_local(d: date, wall_time: datetime, tz: TimezoneLike) -> datetime:
    """把本地日期与另一本地时刻的时分秒组合，返回 UTC 瞬时"""
    local_tz = resolve_timezone(tz)
    naive = datetime(d.year, d.month, d.day, wall_time.hour, wall_time.minute,
                     wall_time.second, wall_time.microsecond)
    return naive.replace(tzinfo=local_tz).astimezone(timezone.utc)


def format_in_timezone(instant: datetime, tz: TimezoneLike, fmt: str = 'datetime') -> str:
    """按时区格式化：date -> 2024/03/31，datetime -> 2024/03/31 08:00:00"""
    local = to_local(instant, tz)
    if fmt == 'date':
        return local.strftime('%Y/%m/%d')
    return local.strftime('%Y/%m/%d %H:%M:%S')


def timezone_offset_hours(tz: TimezoneLike, at: Optional[datetime] = None) -> int:
    """时区相对 UTC 的小时偏移（取整）"""
    at = _ensure_aware(at or datetime.now(timezone.utc))
    offset = to_local(at, tz).utcoffset() or timedelta(0)
    return round(offset.total_seconds() / SECONDS_PER_HOUR)


def format_timezone_display(tz_name: str, at: Optional[datetime] = None) -> str:
    """时区显示文本，如 中国标准时间 (UTC+8)"""
    offset = timezone_offset_hours(tz_name, at)
    offset_str = f"+{offset}" if offset >= 0 else f"{offset}"
    name = TIMEZONE_NAMES.get(tz_name, tz_name)
    return f"{name} (UTC{offset_str})"
