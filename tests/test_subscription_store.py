"""
JSON 文件存储测试
"""
import json

import pytest
from pydantic import ValidationError

from conftest import make_record, utc
from errors import LunarRangeError, SubscriptionNotFound
from expiry_scheduler import ExpiryUpdate
from models.subscription import PeriodUnit, ReminderSetting, ReminderUnit
from subscription_store import JsonFileStore


def _raw(data_file):
    return json.loads(data_file.read_text(encoding='utf-8'))['subscriptions']


def test_missing_file_loads_empty(data_file):
    assert JsonFileStore(str(data_file)).load_all_records() == []


def test_save_and_load_round_trip(data_file):
    store = JsonFileStore(str(data_file))
    records = [make_record('a', 'A'), make_record('b', 'B', use_lunar=True, tags=('影音',))]
    store.save_all_records(records)

    loaded = store.load_all_records()
    assert [r.id for r in loaded] == ['a', 'b']
    assert loaded[1].use_lunar
    assert loaded[1].tags == ('影音',)
    assert loaded[0].expiry_instant == utc(2024, 3, 20)


def test_load_skips_unparseable_records(write_subscriptions, data_file):
    write_subscriptions([
        {'id': 'ok', 'name': 'OK', 'expiryDate': '2024-03-20T00:00:00.000Z'},
        {'id': 'no-expiry', 'name': 'Broken'},
        {'id': 'bad-period', 'name': 'Bad', 'expiryDate': '2024-03-20T00:00:00.000Z', 'periodValue': 0},
    ])
    records = JsonFileStore(str(data_file)).load_all_records()
    assert [r.id for r in records] == ['ok']


def test_load_migrates_legacy_reminder_fields(write_subscriptions, data_file):
    write_subscriptions([
        {'id': 'legacy', 'name': 'Legacy', 'expiryDate': '2024-03-20T00:00:00Z', 'reminderDays': 3},
    ])
    record = JsonFileStore(str(data_file)).get_subscription('legacy')
    assert record.reminder == ReminderSetting(ReminderUnit.DAY, 3)
    assert record.auto_renew
    assert record.is_active


def test_apply_updates_preserves_other_fields(write_subscriptions, data_file):
    write_subscriptions([
        {'id': 'a', 'name': 'A', 'expiryDate': '2024-01-31T00:00:00.000Z', 'price': 9.9},
        {'id': 'b', 'name': 'B', 'expiryDate': '2024-05-01T00:00:00.000Z'},
    ])
    store = JsonFileStore(str(data_file))
    update = ExpiryUpdate('a', utc(2024, 3, 31), utc(2024, 1, 31), 2)

    assert store.apply_updates([update, ExpiryUpdate('gone', utc(2024, 3, 31), utc(2024, 1, 31), 1)]) == 1

    raw = _raw(data_file)
    assert raw[0]['expiryDate'] == '2024-03-31T00:00:00.000Z'
    assert raw[0]['price'] == 9.9
    assert 'updatedAt' in raw[0]
    assert raw[1]['expiryDate'] == '2024-05-01T00:00:00.000Z'


def test_apply_updates_with_nothing_does_not_write(data_file):
    assert JsonFileStore(str(data_file)).apply_updates([]) == 0
    assert not data_file.exists()


def test_create_subscription(data_file):
    store = JsonFileStore(str(data_file))
    record = store.create_subscription({
        'name': '  Netflix ',
        'expiry_date': '2024-04-01T00:00:00Z',
        'period_value': 1,
        'period_unit': 'month',
        'reminder_value': 3,
        'tags': ['影音', '影音', ' '],
    }, now=utc(2024, 3, 15))

    assert record.name == 'Netflix'
    assert record.expiry_instant == utc(2024, 4, 1)
    assert record.reminder == ReminderSetting(ReminderUnit.DAY, 3)
    assert record.tags == ('影音',)
    assert record.created_at
    assert store.get_subscription(record.id) == record


def test_create_subscription_rolls_past_expiry_forward(data_file):
    store = JsonFileStore(str(data_file))
    record = store.create_subscription({
        'name': 'Spotify',
        'expiry_date': '2024-01-31T00:00:00Z',
        'period_unit': 'month',
    }, now=utc(2024, 3, 15))
    assert record.expiry_instant == utc(2024, 3, 31)


def test_create_subscription_rejects_invalid_period(data_file):
    store = JsonFileStore(str(data_file))
    with pytest.raises(ValidationError):
        store.create_subscription({'name': 'X', 'expiry_date': '2024-04-01', 'period_value': 0})
    assert not data_file.exists()


def test_create_lunar_subscription_out_of_range(data_file):
    store = JsonFileStore(str(data_file))
    with pytest.raises(LunarRangeError):
        store.create_subscription({'name': 'X', 'expiry_date': '2101-02-01T00:00:00Z', 'use_lunar': True},
                                  now=utc(2024, 3, 15))


def test_update_subscription(data_file):
    store = JsonFileStore(str(data_file))
    store.save_all_records([make_record('a', 'A')])

    updated = store.update_subscription('a', {'name': 'A+', 'period_unit': 'year', 'reminder_unit': 'hour'},
                                        now=utc(2024, 3, 15))
    assert updated.name == 'A+'
    assert updated.period.unit == PeriodUnit.YEAR
    assert updated.reminder == ReminderSetting(ReminderUnit.HOUR, 0)
    assert updated.expiry_instant == utc(2024, 3, 20)

    raw = _raw(data_file)[0]
    assert raw['reminderHours'] == 0
    assert 'reminderDays' not in raw


def test_update_missing_subscription(data_file):
    store = JsonFileStore(str(data_file))
    with pytest.raises(SubscriptionNotFound):
        store.update_subscription('nope', {'name': 'X'})


def test_toggle_and_delete(data_file):
    store = JsonFileStore(str(data_file))
    store.save_all_records([make_record('a', 'A'), make_record('b', 'B')])

    assert not store.toggle_subscription('a', False).is_active
    assert not store.get_subscription('a').is_active

    store.delete_subscription('b')
    assert [r.id for r in store.load_all_records()] == ['a']
    with pytest.raises(SubscriptionNotFound):
        store.delete_subscription('b')
