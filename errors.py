#!/usr/bin/env python3
"""
错误类型定义

所有错误都只影响正在处理的那一条订阅记录，不会中断整批调度。
"""
from dataclasses import dataclass
from typing import Optional


class RenewalReminderError(Exception):
    """本项目所有异常的基类"""


class LunarRangeError(RenewalReminderError, ValueError):
    """农历表只覆盖 1900-2100 年，超出范围时抛出"""

    def __init__(self, year: int, message: Optional[str] = None):
        self.year = year
        super().__init__(message or f"农历日期超出支持范围（1900-2100年）: {year}")


class LunarInverseFailure(RenewalReminderError):
    """农历转公历搜索不到匹配日期（内部一致性错误）"""

    def __init__(self, lunar):
        self.lunar = lunar
        super().__init__(f"无法将农历日期转换为公历: {lunar}")


class InvalidPeriod(RenewalReminderError, ValueError):
    """周期值必须 >= 1，在创建记录时拒绝"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"周期值必须大于等于 1，当前: {value}")


@dataclass(frozen=True)
class ConversionSkip:
    """调度时某条记录转换失败，本轮跳过"""
    subscription_id: str
    name: str
    reason: str
    error_type: str

    @classmethod
    def from_error(cls, subscription_id: str, name: str, error: Exception) -> "ConversionSkip":
        return cls(
            subscription_id=subscription_id,
            name=name,
            reason=str(error),
            error_type=type(error).__name__,
        )


class SubscriptionNotFound(RenewalReminderError, KeyError):
    """存储中不存在指定 id 的订阅"""

    def __init__(self, subscription_id: str):
        self.subscription_id = subscription_id
        super().__init__(f"订阅不存在: {subscription_id}")

    def __str__(self) -> str:
        return self.args[0]


class RecurrenceLimitExceeded(RenewalReminderError):
    """推进次数超过上限，通常是到期日期远早于当前时间且周期很短"""

    def __init__(self, start, period, steps: int):
        self.start = start
        self.period = period
        self.steps = steps
        super().__init__(f"推进次数超过上限 {steps}: {start} + {period.describe()}")
