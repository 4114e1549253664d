#!/usr/bin/env python3
"""
Prometheus 指标
"""
import time
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    REGISTRY,
    generate_latest,
    start_http_server,
)

from expiry_scheduler import TickResult
from logger import get_logger

logger = get_logger('metrics')


class MetricsCollector:
    """指标收集器"""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        # 订阅指标
        self.subscription_days_gauge = Gauge(
            'renewal_reminder_subscription_days_remaining',
            'Days until subscription expiry',
            ['id', 'name'],
            registry=registry
        )

        self.renewals_counter = Counter(
            'renewal_reminder_auto_renewals',
            'Total auto renewals applied by the scheduler',
            registry=registry
        )

        self.conversion_failures_counter = Counter(
            'renewal_reminder_conversion_failures',
            'Records skipped because of calendar conversion errors',
            ['error_type'],
            registry=registry
        )

        self.due_gauge = Gauge(
            'renewal_reminder_due_subscriptions',
            'Subscriptions in the last notification batch',
            registry=registry
        )

        # 通知渠道
        self.notification_counter = Counter(
            'renewal_reminder_notifications',
            'Notification delivery results',
            ['notifier', 'status'],
            registry=registry
        )

        # 系统指标
        self.last_check_timestamp = Gauge(
            'renewal_reminder_last_check_timestamp',
            'Timestamp of last check',
            registry=registry
        )

        self.check_success_gauge = Gauge(
            'renewal_reminder_check_success',
            'Check success status (1=success, 0=failed)',
            registry=registry
        )

        self.check_duration = Histogram(
            'renewal_reminder_check_duration_seconds',
            'Check execution time distribution',
            buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60),
            registry=registry
        )

    def update_tick_metrics(self, result: TickResult, duration_seconds: Optional[float] = None):
        """
        更新一次调度的指标

        Args:
            result: 调度结果
            duration_seconds: 本次检查耗时
        """
        # 只保留本轮批次中的订阅，离开批次或已删除的订阅不再导出
        self.subscription_days_gauge.clear()
        for item in result.due:
            self.subscription_days_gauge.labels(
                id=item.record.id,
                name=item.record.name
            ).set(item.days_remaining)

        if result.updates:
            self.renewals_counter.inc(len(result.updates))

        for failure in result.failures:
            self.conversion_failures_counter.labels(error_type=failure.error_type).inc()

        self.due_gauge.set(len(result.due))
        self.last_check_timestamp.set(time.time())
        self.check_success_gauge.set(1)

        if duration_seconds is not None:
            self.check_duration.observe(duration_seconds)

    def record_notification(self, notifier: str, success: bool):
        """记录通知渠道发送结果"""
        self.notification_counter.labels(
            notifier=notifier,
            status='success' if success else 'failed'
        ).inc()

    def set_check_failed(self):
        self.check_success_gauge.set(0)

    def get_metrics(self):
        """
        获取所有指标（Prometheus 格式）

        Returns:
            bytes: Prometheus 格式的指标数据
        """
        return generate_latest(self.registry)


# 全局指标收集器实例（延迟初始化，避免重复注册）
_metrics_collector = None


def get_metrics_collector() -> MetricsCollector:
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def start_metrics_server(port: int) -> bool:
    """
    启动 Prometheus 指标 HTTP 端口

    Returns:
        bool: 是否成功启动
    """
    if not port:
        return False
    try:
        start_http_server(port)
    except OSError as e:
        logger.error(f"启动指标端口 {port} 失败: {e}")
        return False
    logger.info(f"Prometheus 指标已暴露在 :{port}/metrics")
    return True
