#!/usr/bin/env python3
"""
配置验证模块
使用 dataclasses 验证配置文件结构
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from timezone_clock import is_valid_timezone


def _as_list(value: Any) -> List[str]:
    """逗号分隔字符串或列表转为去空白的列表"""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(item).strip() for item in value if str(item).strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return bool(value)


class NotifierType(str, Enum):
    """通知渠道类型"""
    WEBHOOK = "webhook"
    TELEGRAM = "telegram"
    BARK = "bark"
    NOTIFYX = "notifyx"
    EMAIL = "email"


class WebhookType(str, Enum):
    """Webhook 类型"""
    FEISHU = "feishu"
    DINGTALK = "dingtalk"
    WECOM = "wecom"
    CUSTOM = "custom"


@dataclass
class WebhookConfig:
    """Webhook 配置"""
    url: str
    type: WebhookType = WebhookType.CUSTOM
    source: str = "renewal-reminder"
    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)
    template: Optional[Any] = None
    # 企业微信、钉钉机器人选项
    msg_type: str = "markdown"
    at_mobiles: List[str] = field(default_factory=list)
    at_all: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookConfig":
        """从字典创建配置"""
        type_str = str(data.get('type', 'custom')).lower()
        try:
            webhook_type = WebhookType(type_str)
        except ValueError:
            webhook_type = WebhookType.CUSTOM

        headers = data.get('headers') or {}
        if not isinstance(headers, dict):
            headers = {}

        return cls(
            url=data.get('url', ''),
            type=webhook_type,
            source=data.get('source', 'renewal-reminder'),
            method=str(data.get('method', 'POST')).upper(),
            headers=headers,
            template=data.get('template'),
            msg_type=str(data.get('msg_type') or 'markdown').lower(),
            at_mobiles=_as_list(data.get('at_mobiles')),
            at_all=_as_bool(data.get('at_all', False))
        )

    def validate(self) -> List[str]:
        """验证配置，返回错误列表"""
        errors = []
        if not self.url:
            errors.append("Webhook url 不能为空")
        elif not self.url.startswith(('http://', 'https://')):
            errors.append("Webhook url 必须以 http:// 或 https:// 开头")
        if self.method not in ('POST', 'PUT', 'GET'):
            errors.append(f"Webhook method 不支持: {self.method}")
        if self.msg_type not in ('markdown', 'text'):
            errors.append(f"Webhook msg_type 只支持 markdown 或 text: {self.msg_type}")
        return errors


@dataclass
class TelegramConfig:
    """Telegram 配置"""
    bot_token: str
    chat_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TelegramConfig":
        return cls(
            bot_token=data.get('bot_token', ''),
            chat_id=str(data.get('chat_id', ''))
        )

    def validate(self) -> List[str]:
        errors = []
        if not self.bot_token:
            errors.append("Telegram bot_token 不能为空")
        if not self.chat_id:
            errors.append("Telegram chat_id 不能为空")
        return errors


@dataclass
class BarkConfig:
    """Bark 配置"""
    device_key: str
    server: str = "https://api.day.app"
    is_archive: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BarkConfig":
        return cls(
            device_key=data.get('device_key', ''),
            server=(data.get('server') or 'https://api.day.app').rstrip('/'),
            is_archive=_as_bool(data.get('is_archive', False))
        )

    def validate(self) -> List[str]:
        if not self.device_key:
            return ["Bark device_key 不能为空"]
        return []


@dataclass
class NotifyXConfig:
    """NotifyX 配置"""
    api_key: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotifyXConfig":
        return cls(api_key=data.get('api_key', ''))

    def validate(self) -> List[str]:
        if not self.api_key:
            return ["NotifyX api_key 不能为空"]
        return []


@dataclass
class EmailConfig:
    """邮件配置（Resend API）"""
    api_key: str
    from_address: str
    to: List[str] = field(default_factory=list)
    from_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailConfig":
        return cls(
            api_key=data.get('api_key', ''),
            from_address=data.get('from', ''),
            to=_as_list(data.get('to')),
            from_name=data.get('from_name', '')
        )

    @property
    def sender(self) -> str:
        """发件人，配置了名称时为 "名称 <地址>" 形式"""
        if self.from_name:
            return f"{self.from_name} <{self.from_address}>"
        return self.from_address

    def validate(self) -> List[str]:
        errors = []
        if not self.api_key:
            errors.append("Email api_key 不能为空")
        if not self.from_address:
            errors.append("Email from 不能为空")
        elif '@' not in self.from_address:
            errors.append(f"Email from 不是有效的邮箱地址: {self.from_address}")
        if not self.to:
            errors.append("Email to 不能为空")
        for address in self.to:
            if '@' not in address:
                errors.append(f"Email to 包含无效的邮箱地址: {address}")
        return errors


@dataclass
class SettingsConfig:
    """系统设置配置"""
    timezone: str = "UTC"
    notification_hours: List[str] = field(default_factory=list)
    enabled_notifiers: List[str] = field(default_factory=list)
    show_lunar: bool = False
    data_file: str = "data/subscriptions.json"
    check_interval_seconds: int = 3600
    metrics_port: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsConfig":
        """从字典创建配置"""
        hours = data.get('notification_hours', [])
        if isinstance(hours, str):
            hours = hours.split(',')
        notifiers = data.get('enabled_notifiers', [])
        if isinstance(notifiers, str):
            notifiers = notifiers.split(',')

        return cls(
            timezone=data.get('timezone') or 'UTC',
            notification_hours=[str(h).strip() for h in hours if str(h).strip()],
            enabled_notifiers=[str(n).strip().lower() for n in notifiers if str(n).strip()],
            show_lunar=bool(data.get('show_lunar', False)),
            data_file=data.get('data_file') or 'data/subscriptions.json',
            check_interval_seconds=int(data.get('check_interval_seconds', 3600)),
            metrics_port=int(data.get('metrics_port', 0))
        )

    def validate(self) -> List[str]:
        """验证配置，返回错误列表"""
        errors = []
        if not is_valid_timezone(self.timezone):
            errors.append(f"timezone 无效: {self.timezone}")

        for hour in self.notification_hours:
            if hour == '*' or hour.upper() == 'ALL':
                continue
            if not hour.isdigit() or not 0 <= int(hour) <= 23:
                errors.append(f"notification_hours 包含无效小时: {hour}")

        valid_notifiers = [n.value for n in NotifierType]
        for notifier in self.enabled_notifiers:
            if notifier not in valid_notifiers:
                errors.append(f"未知的通知渠道: {notifier}，支持: {', '.join(valid_notifiers)}")

        if self.check_interval_seconds <= 0:
            errors.append("check_interval_seconds 必须大于 0")
        if self.metrics_port < 0 or self.metrics_port > 65535:
            errors.append("metrics_port 必须在 0-65535 之间")
        return errors


@dataclass
class AppConfig:
    """应用完整配置"""
    version: Optional[str] = None
    settings: SettingsConfig = field(default_factory=SettingsConfig)
    webhook: Optional[WebhookConfig] = None
    telegram: Optional[TelegramConfig] = None
    bark: Optional[BarkConfig] = None
    notifyx: Optional[NotifyXConfig] = None
    email: Optional[EmailConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """从字典创建配置"""
        return cls(
            version=data.get('version'),
            settings=SettingsConfig.from_dict(data.get('settings', {})),
            webhook=WebhookConfig.from_dict(data['webhook']) if data.get('webhook') else None,
            telegram=TelegramConfig.from_dict(data['telegram']) if data.get('telegram') else None,
            bark=BarkConfig.from_dict(data['bark']) if data.get('bark') else None,
            notifyx=NotifyXConfig.from_dict(data['notifyx']) if data.get('notifyx') else None,
            email=EmailConfig.from_dict(data['email']) if data.get('email') else None
        )

    def channel_config(self, notifier: str):
        """获取指定通知渠道的配置，未配置返回 None"""
        return getattr(self, notifier, None) if notifier in [n.value for n in NotifierType] else None

    def validate(self) -> Dict[str, List[str]]:
        """
        验证配置

        Returns:
            Dict[str, List[str]]: 各模块的错误信息列表
        """
        errors: Dict[str, List[str]] = {}

        settings_errors = self.settings.validate()
        if settings_errors:
            errors['settings'] = settings_errors

        # 只验证已启用的通知渠道
        for notifier in self.settings.enabled_notifiers:
            channel = self.channel_config(notifier)
            if channel is None:
                if notifier in [n.value for n in NotifierType]:
                    errors.setdefault(notifier, []).append(f"已启用 {notifier} 但未配置")
                continue
            channel_errors = channel.validate()
            if channel_errors:
                errors[notifier] = channel_errors

        return errors

    def is_valid(self) -> bool:
        """检查配置是否有效"""
        return not self.validate()
