#!/usr/bin/env python3
"""
订阅记录数据模型

存储中的记录使用 camelCase JSON（expiryDate、periodValue ...），
这里在存储边界完成解析与旧字段迁移，引擎内部只处理强类型的 dataclass。
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from errors import InvalidPeriod


class PeriodUnit(str, Enum):
    """续期周期单位"""
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class ReminderUnit(str, Enum):
    """提醒提前量单位"""
    DAY = "day"
    HOUR = "hour"


PERIOD_UNIT_TEXT = {
    PeriodUnit.DAY: '天',
    PeriodUnit.MONTH: '月',
    PeriodUnit.YEAR: '年',
}

DEFAULT_REMINDER_DAYS = 7


@dataclass(frozen=True)
class Period:
    """续期周期，value 必须 >= 1"""
    value: int
    unit: PeriodUnit = PeriodUnit.MONTH

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 1:
            raise InvalidPeriod(self.value)
        if not isinstance(self.unit, PeriodUnit):
            object.__setattr__(self, 'unit', PeriodUnit(self.unit))

    def scaled(self, times: int) -> "Period":
        """返回 value * times 的新周期"""
        return Period(self.value * times, self.unit)

    def describe(self) -> str:
        return f"{self.value} {PERIOD_UNIT_TEXT[self.unit]}"


@dataclass(frozen=True)
class ReminderSetting:
    """提醒设置，value = 0 表示恰好到期时提醒"""
    unit: ReminderUnit = ReminderUnit.DAY
    value: int = DEFAULT_REMINDER_DAYS

    def __post_init__(self) -> None:
        if not isinstance(self.unit, ReminderUnit):
            object.__setattr__(self, 'unit', ReminderUnit(self.unit))
        if self.value < 0:
            raise ValueError(f"提醒提前量不能为负数: {self.value}")


def _to_number(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def resolve_reminder_setting(data: Optional[Dict[str, Any]]) -> ReminderSetting:
    """
    从存储字段解析提醒设置，兼容旧的 reminderDays / reminderHours

    规则：
    - reminderUnit 为 hour 时按小时，否则按天
    - 小时：reminderValue -> reminderHours -> 0
    - 天：reminderValue -> reminderDays -> 7
    - 负数归零
    """
    data = data or {}
    unit = ReminderUnit.HOUR if data.get('reminderUnit') == 'hour' else ReminderUnit.DAY

    value = _to_number(data.get('reminderValue'))
    if value is None:
        if unit == ReminderUnit.HOUR:
            value = _to_number(data.get('reminderHours'))
            if value is None:
                value = 0
        else:
            value = _to_number(data.get('reminderDays'))
            if value is None:
                value = DEFAULT_REMINDER_DAYS

    if value < 0:
        value = 0

    return ReminderSetting(unit=unit, value=value)


def parse_instant(value: Any) -> datetime:
    """解析 ISO 时间字符串为 UTC aware datetime，无时区信息时按 UTC 处理"""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = date_parser.isoparse(str(value))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """UTC 时间格式化为 2024-01-31T00:00:00.000Z"""
    utc = value.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class SubscriptionRecord:
    """订阅记录（只读，更新通过 dataclasses.replace 生成副本）"""
    id: str
    name: str
    expiry_instant: datetime
    period: Period = field(default_factory=lambda: Period(1, PeriodUnit.MONTH))
    reminder: ReminderSetting = field(default_factory=ReminderSetting)
    use_lunar: bool = False
    auto_renew: bool = True
    is_active: bool = True
    custom_type: str = ''
    category: str = ''
    tags: Tuple[str, ...] = ()
    notes: str = ''
    start_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        """是否已过期（停用记录同样适用）"""
        return self.expiry_instant < now

    def with_expiry(self, new_expiry: datetime) -> "SubscriptionRecord":
        return replace(self, expiry_instant=new_expiry)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionRecord":
        """从存储字典创建记录"""
        if not data.get('id'):
            raise ValueError("订阅记录缺少 id")
        if not data.get('expiryDate'):
            raise ValueError(f"订阅记录 {data.get('id')} 缺少 expiryDate")

        raw_period_value = data.get('periodValue')
        period_value = 1 if raw_period_value in (None, '') else _to_number(raw_period_value)
        if period_value is None:
            raise InvalidPeriod(raw_period_value)
        period_unit = data.get('periodUnit') or PeriodUnit.MONTH.value

        tags = data.get('tags') or []
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            expiry_instant=parse_instant(data['expiryDate']),
            period=Period(period_value, PeriodUnit(period_unit)),
            reminder=resolve_reminder_setting(data),
            use_lunar=bool(data.get('useLunar', False)),
            auto_renew=data.get('autoRenew') is not False,
            is_active=data.get('isActive') is not False,
            custom_type=data.get('customType') or '',
            category=(data.get('category') or '').strip(),
            tags=tuple(t.strip() for t in tags if isinstance(t, str) and t.strip()),
            notes=data.get('notes') or '',
            start_date=data.get('startDate'),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为存储字典"""
        result: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'customType': self.custom_type,
            'category': self.category,
            'tags': list(self.tags),
            'startDate': self.start_date,
            'expiryDate': format_instant(self.expiry_instant),
            'periodValue': self.period.value,
            'periodUnit': self.period.unit.value,
            'reminderUnit': self.reminder.unit.value,
            'reminderValue': self.reminder.value,
            'notes': self.notes,
            'isActive': self.is_active,
            'autoRenew': self.auto_renew,
            'useLunar': self.use_lunar,
        }
        # 兼容旧版本读取方
        if self.reminder.unit == ReminderUnit.DAY:
            result['reminderDays'] = self.reminder.value
        else:
            result['reminderHours'] = self.reminder.value
        if self.created_at:
            result['createdAt'] = self.created_at
        if self.updated_at:
            result['updatedAt'] = self.updated_at
        return result


def records_to_dicts(records: List[SubscriptionRecord]) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in records]
