#!/usr/bin/env python3
"""
到期调度引擎

每次调度（tick）对一批订阅记录：
1. 跳过停用记录
2. 计算剩余天数/小时（农历记录按农历往返后的公历日期计算）
3. 已过期且自动续期：推进到未来，生成到期时间更新
4. 已过期且不自动续期：无条件输出
5. 其余按提醒策略输出
6. 按剩余天数升序排序，并按通知时段过滤输出批次

引擎本身不做 I/O，持久化与通知由调用方完成。
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from errors import ConversionSkip, RenewalReminderError
from lunar_calendar import LunarDate, lunar_to_solar_strict, solar_date_to_lunar
from models.subscription import SubscriptionRecord
from recurrence import advance_until_future
from reminder_policy import should_notify
from timezone_clock import (
    combine_local,
    current_hour,
    days_until_date,
    hours_between,
    local_date,
    resolve_timezone,
    to_local,
)
from logger import get_logger

logger = get_logger('expiry_scheduler')

ALL_HOURS_MARKERS = ('*', 'ALL')


@dataclass(frozen=True)
class ExpiryUpdate:
    """自动续期产生的到期时间变更"""
    subscription_id: str
    new_expiry_instant: datetime
    previous_expiry_instant: datetime
    steps: int


@dataclass(frozen=True)
class DueSubscription:
    """本轮需要通知的订阅"""
    record: SubscriptionRecord
    days_remaining: int
    hours_remaining: float
    renewed: bool = False

    @property
    def expired(self) -> bool:
        return self.days_remaining < 0

    @property
    def hours_remaining_rounded(self) -> int:
        return round(self.hours_remaining)


@dataclass
class TickResult:
    """一次调度的结果"""
    due: List[DueSubscription] = field(default_factory=list)
    updates: List[ExpiryUpdate] = field(default_factory=list)
    failures: List[ConversionSkip] = field(default_factory=list)
    checked: int = 0
    skipped_inactive: int = 0
    current_hour: str = ''
    suppressed_by_hour: bool = False
    # 时段过滤前的候选数量
    candidates: int = 0

    @property
    def has_updates(self) -> bool:
        return bool(self.updates)


def normalize_notification_hours(raw: Optional[Iterable]) -> List[str]:
    """
    规范化通知时段配置

    支持列表或逗号分隔字符串；* / ALL 原样保留，其余补零为两位小时。
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(',')

    hours = []
    for value in raw:
        text = str(value).strip()
        if not text:
            continue
        if text == '*':
            hours.append('*')
        elif text.upper() == 'ALL':
            hours.append('ALL')
        else:
            hours.append(text.zfill(2))
    return hours


def is_notification_hour(hours: Sequence[str], hour: str) -> bool:
    """当前小时是否允许发送通知"""
    if not hours:
        return True
    if any(h in ALL_HOURS_MARKERS for h in hours):
        return True
    return hour in hours


class ExpiryScheduler:
    """到期调度引擎"""

    def __init__(self, timezone_name: str = 'UTC', notification_hours: Optional[Iterable] = None):
        self.timezone_name = timezone_name or 'UTC'
        self.tz = resolve_timezone(self.timezone_name)
        self.notification_hours = normalize_notification_hours(notification_hours)

    def run_tick(self, records: Sequence[SubscriptionRecord], now: Optional[datetime] = None) -> TickResult:
        """
        执行一次调度

        Args:
            records: 订阅记录快照
            now: 当前时刻（UTC aware），默认取系统时间

        Returns:
            TickResult: 待通知批次、到期时间更新与失败记录
        """
        now = now or datetime.now(timezone.utc)
        result = TickResult(current_hour=current_hour(now, self.tz))

        logger.info(
            f"开始检查即将到期的订阅 | UTC: {now.astimezone(timezone.utc).isoformat()} | "
            f"{self.timezone_name}: {to_local(now, self.tz).strftime('%Y-%m-%d %H:%M:%S')} | 共 {len(records)} 个"
        )

        for record in records:
            if not record.is_active:
                logger.debug(f"订阅 \"{record.name}\" 已停用，跳过")
                result.skipped_inactive += 1
                continue

            result.checked += 1
            try:
                due, update = self.evaluate(record, now)
            except (RenewalReminderError, OverflowError, ValueError) as e:
                # 日期超出 datetime 范围时抛 OverflowError 或 ValueError
                skip = ConversionSkip.from_error(record.id, record.name, e)
                logger.warning(f"订阅 \"{record.name}\" ({record.id}) 日期推算失败，本轮跳过: {e}")
                result.failures.append(skip)
                continue

            if update is not None:
                result.updates.append(update)
            if due is not None:
                result.due.append(due)

        result.due.sort(key=lambda d: d.days_remaining)
        result.candidates = len(result.due)

        if result.due and not is_notification_hour(self.notification_hours, result.current_hour):
            logger.info(f"当前小时 {result.current_hour} 未配置为推送时间，跳过发送通知")
            result.due = []
            result.suppressed_by_hour = True

        logger.info(
            f"检查完成 | 待通知: {len(result.due)} | 自动续期: {len(result.updates)} | "
            f"失败: {len(result.failures)} | 停用: {result.skipped_inactive}"
        )
        return result

    def evaluate(self, record: SubscriptionRecord,
                 now: datetime) -> Tuple[Optional[DueSubscription], Optional[ExpiryUpdate]]:
        """
        计算单条记录的提醒与续期结果

        Raises:
            LunarRangeError: 农历记录的日期超出 1900-2100
            LunarInverseFailure: 农历转公历失败
            RecurrenceLimitExceeded: 自动续期推进次数超过上限
        """
        local_expiry = to_local(record.expiry_instant, self.tz)
        expiry_date = local_expiry.date()
        lunar: Optional[LunarDate] = None

        if record.use_lunar:
            lunar = solar_date_to_lunar(expiry_date)
            expiry_date = lunar_to_solar_strict(lunar)

        days_remaining = days_until_date(expiry_date, now, self.tz)
        hours_remaining = hours_between(now, record.expiry_instant)

        logger.debug(
            f"订阅 \"{record.name}\" 到期: {record.expiry_instant.isoformat()} | "
            f"{'农历 ' + str(lunar) + ' | ' if lunar else ''}剩余天数: {days_remaining}"
        )

        if days_remaining < 0 and record.auto_renew:
            today = local_date(now, self.tz)
            if lunar is not None:
                next_lunar, steps = advance_until_future(lunar, record.period, today, lunar=True)
                new_date = lunar_to_solar_strict(next_lunar)
            else:
                new_date, steps = advance_until_future(expiry_date, record.period, today)

            new_expiry = combine_local(new_date, local_expiry, self.tz)
            renewed = record.with_expiry(new_expiry)
            update = ExpiryUpdate(
                subscription_id=record.id,
                new_expiry_instant=new_expiry,
                previous_expiry_instant=record.expiry_instant,
                steps=steps,
            )

            days_remaining = days_until_date(new_date, now, self.tz)
            hours_remaining = hours_between(now, new_expiry)
            logger.info(
                f"订阅 \"{record.name}\" 自动续期 {steps} 个周期，新到期日期: {new_expiry.isoformat()}，"
                f"剩余 {days_remaining} 天"
            )

            if should_notify(record.reminder, days_remaining, hours_remaining):
                logger.info(f"订阅 \"{record.name}\" 在提醒范围内，将发送通知")
                return DueSubscription(renewed, days_remaining, hours_remaining, renewed=True), update
            return None, update

        if days_remaining < 0:
            logger.info(f"订阅 \"{record.name}\" 已过期且未启用自动续期，将发送过期通知")
            return DueSubscription(record, days_remaining, hours_remaining), None

        if should_notify(record.reminder, days_remaining, hours_remaining):
            logger.info(f"订阅 \"{record.name}\" 在提醒范围内，将发送通知")
            return DueSubscription(record, days_remaining, hours_remaining), None

        return None, None
