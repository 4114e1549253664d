"""
数据模型与请求验证模型
"""
from .subscription import (
    Period,
    PeriodUnit,
    ReminderSetting,
    ReminderUnit,
    SubscriptionRecord,
    resolve_reminder_setting,
)
from .api_models import (
    CreateSubscriptionRequest,
    UpdateSubscriptionRequest,
)

__all__ = [
    'Period',
    'PeriodUnit',
    'ReminderSetting',
    'ReminderUnit',
    'SubscriptionRecord',
    'resolve_reminder_setting',
    'CreateSubscriptionRequest',
    'UpdateSubscriptionRequest',
]
