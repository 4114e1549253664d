"""
通知渠道模块
支持 Webhook（飞书/钉钉/企业微信/自定义）、Telegram、Bark、NotifyX、邮件（Resend）
"""
from typing import List

from config_validator import AppConfig
from logger import get_logger
from .base import BaseNotifier
from .webhook import WebhookNotifier
from .telegram import TelegramNotifier
from .bark import BarkNotifier
from .notifyx import NotifyXNotifier
from .email import EmailNotifier

logger = get_logger('notifiers')

# 消息中带发送时间，需要按配置时区显示的渠道
TIMEZONE_AWARE_NOTIFIERS = (WebhookNotifier, EmailNotifier)

# 可用的通知渠道映射
NOTIFIERS = {
    'webhook': WebhookNotifier,
    'telegram': TelegramNotifier,
    'bark': BarkNotifier,
    'notifyx': NotifyXNotifier,
    'email': EmailNotifier,
}


def get_notifier(notifier_name):
    """根据渠道名称获取通知类"""
    notifier_class = NOTIFIERS.get(notifier_name)
    if not notifier_class:
        raise ValueError(f"未知的通知渠道: {notifier_name}. 支持的渠道: {list(NOTIFIERS.keys())}")
    return notifier_class


def build_notifiers(config: AppConfig) -> List[BaseNotifier]:
    """按配置创建已启用且已配置的通知渠道"""
    notifiers: List[BaseNotifier] = []
    for name in config.settings.enabled_notifiers:
        try:
            notifier_class = get_notifier(name)
        except ValueError as e:
            logger.warning(str(e))
            continue

        channel_config = config.channel_config(name)
        if channel_config is None:
            logger.warning(f"通知渠道 {name} 已启用但未配置，跳过")
            continue

        if notifier_class in TIMEZONE_AWARE_NOTIFIERS:
            notifiers.append(notifier_class(channel_config, timezone_name=config.settings.timezone))
        else:
            notifiers.append(notifier_class(channel_config))

    return notifiers


__all__ = [
    'BaseNotifier',
    'WebhookNotifier',
    'TelegramNotifier',
    'BarkNotifier',
    'NotifyXNotifier',
    'EmailNotifier',
    'NOTIFIERS',
    'get_notifier',
    'build_notifiers',
]
