"""
提醒判定测试
"""
import pytest

from models.subscription import ReminderSetting, ReminderUnit, resolve_reminder_setting
from reminder_policy import describe_reminder, should_notify

DAY = ReminderUnit.DAY
HOUR = ReminderUnit.HOUR


@pytest.mark.parametrize('unit, value, days, hours, expected', [
    (DAY, 3, 3, 72.0, True),
    (DAY, 3, 4, 96.0, False),
    (DAY, 3, 0, 2.0, True),
    (DAY, 3, -1, -20.0, False),
    (DAY, 0, 0, 5.0, True),
    (DAY, 0, -1, -5.0, False),
    (DAY, 0, 1, 20.0, False),
    (HOUR, 0, 0, 0.5, True),
    (HOUR, 0, 0, 1.0, False),
    (HOUR, 0, 0, -0.1, False),
    (HOUR, 12, 0, 12.0, True),
    (HOUR, 12, 1, 12.5, False),
    (HOUR, 12, 0, -1.0, False),
])
def test_should_notify(unit, value, days, hours, expected):
    assert should_notify(ReminderSetting(unit, value), days, hours) is expected


@pytest.mark.parametrize('data, expected', [
    ({}, ReminderSetting(DAY, 7)),
    (None, ReminderSetting(DAY, 7)),
    ({'reminderDays': 3}, ReminderSetting(DAY, 3)),
    ({'reminderUnit': 'day', 'reminderValue': 5, 'reminderDays': 3}, ReminderSetting(DAY, 5)),
    ({'reminderUnit': 'hour'}, ReminderSetting(HOUR, 0)),
    ({'reminderUnit': 'hour', 'reminderHours': '6'}, ReminderSetting(HOUR, 6)),
    ({'reminderUnit': 'hour', 'reminderValue': 2, 'reminderHours': 6}, ReminderSetting(HOUR, 2)),
    ({'reminderDays': -4}, ReminderSetting(DAY, 0)),
    ({'reminderValue': 'abc', 'reminderDays': 2}, ReminderSetting(DAY, 2)),
    ({'reminderUnit': 'week', 'reminderValue': 1}, ReminderSetting(DAY, 1)),
])
def test_resolve_reminder_setting(data, expected):
    assert resolve_reminder_setting(data) == expected


def test_describe_reminder():
    assert describe_reminder(ReminderSetting(DAY, 3)) == '提前 3 天'
    assert describe_reminder(ReminderSetting(DAY, 0)) == '提前 0 天（仅到期时提醒）'
    assert describe_reminder(ReminderSetting(HOUR, 6)) == '提前 6 小时（小时级提醒）'
