"""
Prometheus 指标测试
"""
from prometheus_client import CollectorRegistry

from conftest import make_record, utc
from errors import ConversionSkip
from expiry_scheduler import DueSubscription, ExpiryUpdate, TickResult
from metrics import MetricsCollector


def test_update_tick_metrics():
    registry = CollectorRegistry()
    collector = MetricsCollector(registry)
    result = TickResult(
        due=[DueSubscription(make_record('a', 'A'), 3, 72.0)],
        updates=[ExpiryUpdate('b', utc(2024, 3, 31), utc(2024, 1, 31), 2)],
        failures=[ConversionSkip('c', 'C', 'out of range', 'LunarRangeError')],
    )

    collector.update_tick_metrics(result, 0.2)
    collector.record_notification('webhook', True)
    collector.record_notification('webhook', False)

    assert registry.get_sample_value('renewal_reminder_subscription_days_remaining', {'id': 'a', 'name': 'A'}) == 3
    assert registry.get_sample_value('renewal_reminder_auto_renewals_total') == 1
    assert registry.get_sample_value('renewal_reminder_conversion_failures_total',
                                     {'error_type': 'LunarRangeError'}) == 1
    assert registry.get_sample_value('renewal_reminder_due_subscriptions') == 1
    assert registry.get_sample_value('renewal_reminder_notifications_total',
                                     {'notifier': 'webhook', 'status': 'failed'}) == 1
    assert registry.get_sample_value('renewal_reminder_check_success') == 1
    assert b'renewal_reminder_last_check_timestamp' in collector.get_metrics()


def test_set_check_failed():
    registry = CollectorRegistry()
    collector = MetricsCollector(registry)
    collector.set_check_failed()
    assert registry.get_sample_value('renewal_reminder_check_success') == 0


def test_days_remaining_only_exports_current_batch():
    registry = CollectorRegistry()
    collector = MetricsCollector(registry)

    collector.update_tick_metrics(TickResult(due=[
        DueSubscription(make_record('a', 'A'), 3, 72.0),
        DueSubscription(make_record('b', 'B'), 5, 120.0),
    ]))
    collector.update_tick_metrics(TickResult(due=[DueSubscription(make_record('b', 'B'), 4, 96.0)]))

    assert registry.get_sample_value('renewal_reminder_subscription_days_remaining', {'id': 'a', 'name': 'A'}) is None
    assert registry.get_sample_value('renewal_reminder_subscription_days_remaining', {'id': 'b', 'name': 'B'}) == 4
