#!/usr/bin/env python3
"""
订阅存储

SubscriptionStore 定义调度引擎依赖的存储接口（全量读取、全量写回、批量更新到期时间），
JsonFileStore 是基于 JSON 文件的实现，另外提供创建/编辑/删除/启停订阅的操作。
"""
import fcntl
import json
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from errors import SubscriptionNotFound
from expiry_scheduler import ExpiryUpdate
from lunar_calendar import lunar_to_solar_strict, solar_date_to_lunar
from models.api_models import CreateSubscriptionRequest, UpdateSubscriptionRequest
from models.subscription import (
    Period,
    PeriodUnit,
    ReminderSetting,
    ReminderUnit,
    SubscriptionRecord,
    format_instant,
    parse_instant,
    resolve_reminder_setting,
)
from recurrence import advance_until_future
from timezone_clock import combine_local, local_date, to_local
from logger import get_logger

logger = get_logger('subscription_store')


class SubscriptionStore(ABC):
    """订阅存储接口"""

    @abstractmethod
    def load_all_records(self) -> List[SubscriptionRecord]:
        """读取全部订阅记录"""

    @abstractmethod
    def save_all_records(self, records: Sequence[SubscriptionRecord]) -> None:
        """全量替换订阅记录"""

    def apply_updates(self, updates: Sequence[ExpiryUpdate]) -> int:
        """
        批量应用到期时间更新，默认实现为读取-合并-全量写回

        Returns:
            int: 实际更新的记录数
        """
        if not updates:
            return 0
        by_id = {u.subscription_id: u for u in updates}
        records = self.load_all_records()
        merged = []
        applied = 0
        for record in records:
            update = by_id.get(record.id)
            if update is not None:
                record = record.with_expiry(update.new_expiry_instant)
                applied += 1
            merged.append(record)
        self.save_all_records(merged)
        return applied


def _now_iso() -> str:
    return format_instant(datetime.now(timezone.utc))


def roll_forward_expiry(expiry: datetime, period: Period, use_lunar: bool,
                        now: datetime, timezone_name: str = 'UTC') -> datetime:
    """
    到期时间早于今天时推进到未来（创建/编辑订阅时使用）

    Raises:
        LunarRangeError: 农历订阅的到期日期超出 1900-2100
    """
    local_expiry = to_local(expiry, timezone_name)
    today = local_date(now, timezone_name)

    if use_lunar:
        # 农历订阅必须能转换为农历，越界时直接拒绝
        lunar = solar_date_to_lunar(local_expiry.date())
        if local_expiry.date() >= today:
            return expiry
        next_lunar, _ = advance_until_future(lunar, period, today, lunar=True)
        new_date = lunar_to_solar_strict(next_lunar)
    else:
        if local_expiry.date() >= today:
            return expiry
        new_date, _ = advance_until_future(local_expiry.date(), period, today)

    return combine_local(new_date, local_expiry, timezone_name)


class JsonFileStore(SubscriptionStore):
    """基于 JSON 文件的订阅存储（{"subscriptions": [...]}）"""

    def __init__(self, data_file: str = 'data/subscriptions.json'):
        self.data_file = Path(data_file)
        self._lock = threading.RLock()
        self._lock_file = self.data_file.parent / f'.{self.data_file.name}.lock'

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """进程内 RLock + 跨进程 fcntl 文件锁"""
        with self._lock:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._lock_file, 'a') as lock:
                fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    def _read_raw(self) -> List[Dict[str, Any]]:
        if not self.data_file.exists():
            logger.info(f"订阅数据文件不存在: {self.data_file}")
            return []

        with open(self.data_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        # 兼容直接存储为列表的旧格式
        if isinstance(data, list):
            return data
        return data.get('subscriptions', [])

    def _write_raw(self, items: List[Dict[str, Any]]) -> None:
        """临时文件 + 原子替换"""
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.data_file.parent,
            prefix=f'.{self.data_file.name}.',
            suffix='.tmp'
        )

        try:
            with open(temp_fd, 'w', encoding='utf-8') as f:
                json.dump({'subscriptions': items}, f, indent=2, ensure_ascii=False)
                f.flush()

            Path(temp_path).replace(self.data_file)
            logger.debug(f"订阅数据已保存到: {self.data_file}")

        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    @staticmethod
    def _parse_records(items: List[Dict[str, Any]]) -> List[SubscriptionRecord]:
        records = []
        for item in items:
            try:
                records.append(SubscriptionRecord.from_dict(item))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"跳过无法解析的订阅记录 {item.get('id', '?')}: {e}")
        return records

    def load_all_records(self) -> List[SubscriptionRecord]:
        with self._lock:
            return self._parse_records(self._read_raw())

    def save_all_records(self, records: Sequence[SubscriptionRecord]) -> None:
        with self._file_lock():
            self._write_raw([r.to_dict() for r in records])
        logger.info(f"已保存 {len(records)} 个订阅")

    def apply_updates(self, updates: Sequence[ExpiryUpdate]) -> int:
        """按 id 合并到期时间更新，保留记录中的其他字段"""
        if not updates:
            return 0

        by_id = {u.subscription_id: u for u in updates}
        applied = 0
        with self._file_lock():
            items = self._read_raw()
            for item in items:
                update = by_id.get(str(item.get('id')))
                if update is None:
                    continue
                item['expiryDate'] = format_instant(update.new_expiry_instant)
                item['updatedAt'] = _now_iso()
                applied += 1
            self._write_raw(items)

        missing = len(by_id) - applied
        if missing:
            logger.warning(f"{missing} 个到期时间更新未找到对应订阅（可能已被删除）")
        logger.info(f"已更新 {applied} 个订阅的到期时间")
        return applied

    def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        for record in self.load_all_records():
            if record.id == subscription_id:
                return record
        return None

    def create_subscription(self, request: Union[CreateSubscriptionRequest, Dict[str, Any]],
                            now: Optional[datetime] = None,
                            timezone_name: str = 'UTC') -> SubscriptionRecord:
        """
        创建订阅

        到期时间早于今天时按周期推进到未来；农历订阅日期越界时抛 LunarRangeError。

        Raises:
            pydantic.ValidationError: 输入校验失败（如周期值 < 1）
            LunarRangeError: 农历日期超出支持范围
        """
        if not isinstance(request, CreateSubscriptionRequest):
            request = CreateSubscriptionRequest.model_validate(request)

        now = now or datetime.now(timezone.utc)
        period = Period(request.period_value, PeriodUnit(request.period_unit))
        expiry = roll_forward_expiry(parse_instant(request.expiry_date), period,
                                     request.use_lunar, now, timezone_name)
        reminder = resolve_reminder_setting({
            'reminderUnit': request.reminder_unit,
            'reminderValue': request.reminder_value,
        })

        record = SubscriptionRecord(
            id=uuid.uuid4().hex,
            name=request.name,
            expiry_instant=expiry,
            period=period,
            reminder=reminder,
            use_lunar=request.use_lunar,
            auto_renew=request.auto_renew,
            is_active=request.is_active,
            custom_type=request.custom_type,
            category=request.category.strip(),
            tags=tuple(request.tags),
            notes=request.notes,
            start_date=request.start_date,
            created_at=_now_iso(),
        )

        with self._file_lock():
            items = self._read_raw()
            items.append(record.to_dict())
            self._write_raw(items)

        logger.info(f"已创建订阅: {record.name} ({record.id})，到期: {format_instant(record.expiry_instant)}")
        return record

    def update_subscription(self, subscription_id: str,
                            request: Union[UpdateSubscriptionRequest, Dict[str, Any]],
                            now: Optional[datetime] = None,
                            timezone_name: str = 'UTC') -> SubscriptionRecord:
        """
        编辑订阅，未提供的字段保持原值

        Raises:
            SubscriptionNotFound: 订阅不存在
            LunarRangeError: 农历日期超出支持范围
        """
        if not isinstance(request, UpdateSubscriptionRequest):
            request = UpdateSubscriptionRequest.model_validate(request)

        now = now or datetime.now(timezone.utc)
        changes = request.model_dump(exclude_none=True)

        with self._file_lock():
            items = self._read_raw()
            index = next((i for i, item in enumerate(items) if str(item.get('id')) == subscription_id), None)
            if index is None:
                raise SubscriptionNotFound(subscription_id)

            current = SubscriptionRecord.from_dict(items[index])

            period = current.period
            if 'period_value' in changes or 'period_unit' in changes:
                period = Period(changes.get('period_value', period.value),
                                PeriodUnit(changes.get('period_unit', period.unit.value)))

            reminder = current.reminder
            if 'reminder_unit' in changes or 'reminder_value' in changes:
                unit = ReminderUnit(changes.get('reminder_unit', reminder.unit.value))
                value = changes.get('reminder_value')
                if value is None:
                    value = reminder.value if unit == reminder.unit else resolve_reminder_setting(
                        {'reminderUnit': unit.value}).value
                reminder = ReminderSetting(unit, value)

            use_lunar = changes.get('use_lunar', current.use_lunar)
            expiry = parse_instant(changes['expiry_date']) if 'expiry_date' in changes else current.expiry_instant
            expiry = roll_forward_expiry(expiry, period, use_lunar, now, timezone_name)

            updated = replace(
                current,
                name=changes.get('name', current.name),
                expiry_instant=expiry,
                period=period,
                reminder=reminder,
                use_lunar=use_lunar,
                auto_renew=changes.get('auto_renew', current.auto_renew),
                is_active=changes.get('is_active', current.is_active),
                custom_type=changes.get('custom_type', current.custom_type),
                category=changes.get('category', current.category).strip(),
                tags=tuple(changes.get('tags', current.tags)),
                notes=changes.get('notes', current.notes),
                start_date=changes.get('start_date', current.start_date),
                updated_at=_now_iso(),
            )

            merged = dict(items[index])
            merged.pop('reminderDays', None)
            merged.pop('reminderHours', None)
            merged.update(updated.to_dict())
            items[index] = merged
            self._write_raw(items)

        logger.info(f"已更新订阅: {updated.name} ({subscription_id})")
        return updated

    def delete_subscription(self, subscription_id: str) -> None:
        """删除订阅，不存在时抛 SubscriptionNotFound"""
        with self._file_lock():
            items = self._read_raw()
            remaining = [item for item in items if str(item.get('id')) != subscription_id]
            if len(remaining) == len(items):
                raise SubscriptionNotFound(subscription_id)
            self._write_raw(remaining)
        logger.info(f"已删除订阅: {subscription_id}")

    def toggle_subscription(self, subscription_id: str, is_active: bool) -> SubscriptionRecord:
        """启用/停用订阅"""
        with self._file_lock():
            items = self._read_raw()
            for item in items:
                if str(item.get('id')) == subscription_id:
                    item['isActive'] = bool(is_active)
                    item['updatedAt'] = _now_iso()
                    self._write_raw(items)
                    record = SubscriptionRecord.from_dict(item)
                    break
            else:
                raise SubscriptionNotFound(subscription_id)

        logger.info(f"订阅 {record.name} 已{'启用' if is_active else '停用'}")
        return record
