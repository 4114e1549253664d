"""
测试公共固定装置
"""
import json
import os
import sys
from datetime import datetime, timezone

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from config_loader import clear_config_cache, load_config_with_env_vars  # noqa: E402
from models.subscription import Period, PeriodUnit, ReminderSetting, ReminderUnit, SubscriptionRecord  # noqa: E402
from notifiers.base import BaseNotifier  # noqa: E402

CONFIG_ENV_VARS = (
    'USE_ENV_CONFIG', 'TIMEZONE', 'NOTIFICATION_HOURS', 'ENABLED_NOTIFIERS', 'SHOW_LUNAR', 'DATA_FILE',
    'CHECK_INTERVAL_SECONDS', 'METRICS_PORT', 'WEBHOOK_URL', 'WEBHOOK_TYPE', 'WEBHOOK_SOURCE',
    'WEBHOOK_METHOD', 'WEBHOOK_HEADERS', 'WEBHOOK_TEMPLATE', 'TG_BOT_TOKEN', 'TG_CHAT_ID',
    'WEBHOOK_MSG_TYPE', 'WEBHOOK_AT_MOBILES', 'WEBHOOK_AT_ALL',
    'BARK_DEVICE_KEY', 'BARK_SERVER', 'BARK_IS_ARCHIVE', 'NOTIFYX_API_KEY',
    'RESEND_API_KEY', 'EMAIL_FROM', 'EMAIL_FROM_NAME', 'EMAIL_TO',
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """清除会影响配置加载的环境变量，并跳过 .env 加载"""
    for key in CONFIG_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(load_config_with_env_vars, '_env_loaded', True, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_record(record_id='sub-1', name='ChatGPT Plus', expiry=None, period=None, reminder=None, **kwargs):
    return SubscriptionRecord(
        id=record_id,
        name=name,
        expiry_instant=expiry or utc(2024, 3, 20),
        period=period or Period(1, PeriodUnit.MONTH),
        reminder=reminder or ReminderSetting(ReminderUnit.DAY, 7),
        **kwargs
    )


class FakeNotifier(BaseNotifier):
    """记录调用参数的假通知渠道"""

    def __init__(self, name='fake', succeed=True):
        super().__init__()
        self.name = name
        self.succeed = succeed
        self.sent = []

    def build_request(self, title, body, tags):
        return {'method': 'POST', 'url': 'http://example.invalid'}

    def notify(self, title, body, tags=None):
        self.sent.append((title, body, list(tags or [])))
        return self.succeed


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / 'subscriptions.json'


@pytest.fixture
def write_subscriptions(data_file):
    def _write(items):
        data_file.write_text(json.dumps({'subscriptions': items}, ensure_ascii=False), encoding='utf-8')
        return data_file
    return _write


@pytest.fixture
def config_file(tmp_path, data_file):
    def _write(settings=None, **sections):
        config = {'settings': {'timezone': 'UTC', 'data_file': str(data_file)}}
        config['settings'].update(settings or {})
        config.update(sections)
        path = tmp_path / 'config.json'
        path.write_text(json.dumps(config, ensure_ascii=False), encoding='utf-8')
        return str(path)
    return _write
