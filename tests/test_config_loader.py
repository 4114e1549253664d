"""
配置加载与验证测试
"""
import json

from config_loader import get_config, load_config_with_env_vars, mask_sensitive_data
from config_validator import AppConfig, WebhookType


def test_load_config_file_with_placeholders(tmp_path, monkeypatch):
    monkeypatch.setenv('MY_BARK_KEY', 'bark-key-123456')
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'settings': {'timezone': 'Asia/Shanghai', 'enabled_notifiers': ['bark']},
        'bark': {'device_key': '${MY_BARK_KEY}'},
    }), encoding='utf-8')

    config = load_config_with_env_vars(str(path))
    assert config['bark']['device_key'] == 'bark-key-123456'
    assert config['settings']['timezone'] == 'Asia/Shanghai'


def test_env_overrides_settings_and_channels(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'settings': {'timezone': 'UTC', 'notification_hours': ['08']},
        'webhook': {'url': 'https://example.com/old', 'type': 'custom'},
    }), encoding='utf-8')
    monkeypatch.setenv('TIMEZONE', 'Asia/Tokyo')
    monkeypatch.setenv('NOTIFICATION_HOURS', '9, 21')
    monkeypatch.setenv('ENABLED_NOTIFIERS', 'webhook,telegram')
    monkeypatch.setenv('SHOW_LUNAR', 'true')
    monkeypatch.setenv('WEBHOOK_URL', 'https://open.feishu.cn/open-apis/bot/v2/hook/abc')
    monkeypatch.setenv('WEBHOOK_TYPE', 'feishu')
    monkeypatch.setenv('TG_BOT_TOKEN', '123:token')
    monkeypatch.setenv('TG_CHAT_ID', '42')

    config = load_config_with_env_vars(str(path))
    app = AppConfig.from_dict(config)

    assert app.settings.timezone == 'Asia/Tokyo'
    assert app.settings.notification_hours == ['9', '21']
    assert app.settings.enabled_notifiers == ['webhook', 'telegram']
    assert app.settings.show_lunar is True
    assert app.webhook.type == WebhookType.FEISHU
    assert app.webhook.url.endswith('/hook/abc')
    assert app.telegram.chat_id == '42'
    assert app.is_valid()


def test_missing_config_file_builds_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv('NOTIFYX_API_KEY', 'nx-key')
    monkeypatch.setenv('DATA_FILE', '/tmp/subs.json')
    monkeypatch.setenv('CHECK_INTERVAL_SECONDS', '600')

    config = load_config_with_env_vars(str(tmp_path / 'missing.json'))
    assert config['notifyx'] == {'api_key': 'nx-key'}
    assert config['settings']['data_file'] == '/tmp/subs.json'
    assert config['settings']['check_interval_seconds'] == 600


def test_get_config_is_cached(config_file):
    path = config_file()
    first = get_config(path)
    assert get_config(path) is first
    assert get_config(path, use_cache=False) is not first


def test_validate_reports_problems_per_section():
    app = AppConfig.from_dict({
        'settings': {
            'timezone': 'Mars/Olympus',
            'notification_hours': ['25', 'ALL'],
            'enabled_notifiers': ['telegram', 'pigeon', 'bark'],
        },
        'bark': {'device_key': ''},
    })
    errors = app.validate()

    assert any('timezone' in e for e in errors['settings'])
    assert any('25' in e for e in errors['settings'])
    assert any('pigeon' in e for e in errors['settings'])
    assert errors['telegram'] == ['已启用 telegram 但未配置']
    assert errors['bark'] == ['Bark device_key 不能为空']
    assert not app.is_valid()


def test_mask_sensitive_data():
    config = {
        'webhook': {'url': 'https://open.feishu.cn/open-apis/bot/v2/hook/secret-id', 'headers': {'X-Token': 't'}},
        'telegram': {'bot_token': '1234567890:ABCDEFG', 'chat_id': '42'},
        'notifyx': {'api_key': 'short'},
    }
    masked = mask_sensitive_data(config)

    assert masked['webhook']['url'].endswith('hook/***')
    assert masked['webhook']['headers'] == {'X-Token': '***'}
    assert masked['telegram']['bot_token'] == '1234***DEFG'
    assert masked['notifyx']['api_key'] == '***'
    assert config['telegram']['bot_token'] == '1234567890:ABCDEFG'


def test_email_and_wecom_options_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv('ENABLED_NOTIFIERS', 'email,webhook')
    monkeypatch.setenv('RESEND_API_KEY', 're_1234567890')
    monkeypatch.setenv('EMAIL_FROM', 'noreply@example.com')
    monkeypatch.setenv('EMAIL_FROM_NAME', '订阅提醒')
    monkeypatch.setenv('EMAIL_TO', 'a@example.com, b@example.com')
    monkeypatch.setenv('WEBHOOK_URL', 'https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=k')
    monkeypatch.setenv('WEBHOOK_TYPE', 'wecom')
    monkeypatch.setenv('WEBHOOK_MSG_TYPE', 'text')
    monkeypatch.setenv('WEBHOOK_AT_MOBILES', '13800000000,13900000000')
    monkeypatch.setenv('WEBHOOK_AT_ALL', 'false')

    app = AppConfig.from_dict(load_config_with_env_vars(str(tmp_path / 'missing.json')))

    assert app.email.sender == '订阅提醒 <noreply@example.com>'
    assert app.email.to == ['a@example.com', 'b@example.com']
    assert app.webhook.msg_type == 'text'
    assert app.webhook.at_mobiles == ['13800000000', '13900000000']
    assert app.webhook.at_all is False
    assert app.is_valid()


def test_email_validation_and_masking():
    config = {
        'settings': {'enabled_notifiers': ['email']},
        'email': {'api_key': 're_1234567890', 'from': 'not-an-address', 'to': []},
    }
    errors = AppConfig.from_dict(config).validate()
    assert errors['email'] == ['Email from 不是有效的邮箱地址: not-an-address', 'Email to 不能为空']

    assert mask_sensitive_data(config)['email']['api_key'] == 're_1***7890'
