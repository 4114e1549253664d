#!/usr/bin/env python3
"""
通知文案生成
"""
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from errors import LunarRangeError
from expiry_scheduler import DueSubscription
from lunar_calendar import solar_date_to_lunar
from models.subscription import SubscriptionRecord
from reminder_policy import describe_reminder
from timezone_clock import format_in_timezone, format_timezone_display, to_local
from logger import get_logger

logger = get_logger('notification_formatter')

NOTIFICATION_TITLE = '订阅到期提醒'

CATEGORY_SEPARATOR = re.compile(r'[/,，\s]+')
MARKDOWN_MARKS = re.compile(r'(\*+|##|#|`)')


def strip_markdown(text: str) -> str:
    """去除 markdown 标记，供纯文本渠道使用"""
    return MARKDOWN_MARKS.sub('', text or '')


def status_line(days_remaining: int) -> Tuple[str, str]:
    if days_remaining == 0:
        return '⚠️', '今天到期！'
    if days_remaining < 0:
        return '🚨', f'已过期 {abs(days_remaining)} 天'
    return '📅', f'将在 {days_remaining} 天后到期'


def _lunar_text(record: SubscriptionRecord, timezone_name: str) -> str:
    local_date = to_local(record.expiry_instant, timezone_name).date()
    try:
        return solar_date_to_lunar(local_date).full_str
    except LunarRangeError as e:
        logger.debug(f"订阅 \"{record.name}\" 到期日期无法显示农历: {e}")
        return ''


def format_subscription(item: DueSubscription, timezone_name: str = 'UTC', show_lunar: bool = False) -> str:
    """单条订阅的通知内容"""
    record = item.record
    emoji, status = status_line(item.days_remaining)

    type_text = record.custom_type or '其他'
    period_text = f"(周期: {record.period.describe()})"
    category_text = record.category or '未分类'
    calendar_type = '农历' if record.use_lunar else '公历'
    expiry_text = format_in_timezone(record.expiry_instant, timezone_name, 'date')

    lines = [
        f"{emoji} **{record.name}**",
        f"类型: {type_text} {period_text}",
        f"分类: {category_text}",
        f"日历类型: {calendar_type}",
        f"到期日期: {expiry_text}",
    ]
    if show_lunar:
        lunar_text = _lunar_text(record, timezone_name)
        if lunar_text:
            lines.append(f"农历日期: {lunar_text}")
    lines.extend([
        f"自动续期: {'是' if record.auto_renew else '否'}",
        f"提醒策略: {describe_reminder(record.reminder)}",
        f"到期状态: {status}",
    ])
    if record.notes:
        lines.append(f"备注: {record.notes}")
    return '\n'.join(lines)


def format_notification_content(due: Iterable[DueSubscription], timezone_name: str = 'UTC',
                                show_lunar: bool = False, now: Optional[datetime] = None) -> str:
    """
    生成一批到期订阅的通知正文（markdown）

    Args:
        due: 待通知订阅
        timezone_name: 显示使用的时区
        show_lunar: 是否附带农历日期
        now: 发送时间，默认当前时间

    Returns:
        str: 通知正文，末尾附发送时间与时区
    """
    now = now or datetime.now(timezone.utc)
    content = ''.join(
        format_subscription(item, timezone_name, show_lunar) + '\n\n' for item in due
    )
    content += (
        f"发送时间: {format_in_timezone(now, timezone_name, 'datetime')}\n"
        f"当前时区: {format_timezone_display(timezone_name, now)}"
    )
    return content


def extract_tags(records: Iterable[SubscriptionRecord]) -> List[str]:
    """合并订阅的标签、分类（按分隔符拆分）和类型，去重保序"""
    tags: List[str] = []

    def add(tag: str) -> None:
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)

    for record in records:
        for tag in record.tags:
            add(tag)
        for part in CATEGORY_SEPARATOR.split(record.category or ''):
            add(part)
        add(record.custom_type or '')
    return tags
