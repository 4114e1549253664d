#!/usr/bin/env python3
"""
提醒判定
"""
from models.subscription import ReminderSetting, ReminderUnit


def should_notify(reminder: ReminderSetting, days_remaining: int, hours_remaining: float) -> bool:
    """
    判断本轮是否需要提醒

    - 按天、value = 0：仅到期当天
    - 按天、value > 0：0 <= 剩余天数 <= value
    - 按小时、value = 0：到期前一小时窗口内（0 <= 剩余小时 < 1），避免每轮重复提醒
    - 按小时、value > 0：0 <= 剩余小时 <= value
    """
    if reminder is None:
        return False
    if reminder.unit == ReminderUnit.HOUR:
        if reminder.value == 0:
            return 0 <= hours_remaining < 1
        return 0 <= hours_remaining <= reminder.value
    if reminder.value == 0:
        return days_remaining == 0
    return 0 <= days_remaining <= reminder.value


def describe_reminder(reminder: ReminderSetting) -> str:
    """提醒策略描述文本"""
    unit_text = '小时' if reminder.unit == ReminderUnit.HOUR else '天'
    if reminder.value == 0:
        suffix = '（仅到期时提醒）'
    elif reminder.unit == ReminderUnit.HOUR:
        suffix = '（小时级提醒）'
    else:
        suffix = ''
    return f"提前 {reminder.value} {unit_text}{suffix}"
