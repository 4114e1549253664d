#!/usr/bin/env python3
"""
配置加载模块
支持从环境变量读取敏感配置，优先于配置文件
支持配置文件变化监听和自动重载
"""
import os
import json
import re
import copy
import hashlib
from typing import Dict, Any, Optional, Callable, List
from pathlib import Path
from threading import Lock
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
from dotenv import load_dotenv
from config_validator import AppConfig
from logger import get_logger

logger = get_logger('config_loader')

DEFAULT_CONFIG_FILE = 'config.json'


def load_env_file(env_file: str = '.env') -> None:
    """加载 .env 文件"""
    if os.path.exists(env_file):
        load_dotenv(env_file, override=True)
        logger.info(f"[Config] 已加载环境变量文件: {env_file}")


def get_env(key: str, default=None) -> Optional[str]:
    """获取环境变量"""
    return os.environ.get(key, default)


def _split_env_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_webhook_from_env() -> Optional[Dict[str, Any]]:
    """从环境变量获取 webhook 配置"""
    webhook_url = get_env('WEBHOOK_URL')
    if not webhook_url:
        return None

    webhook: Dict[str, Any] = {
        'url': webhook_url,
        'type': get_env('WEBHOOK_TYPE', 'custom'),
        'source': get_env('WEBHOOK_SOURCE', 'renewal-reminder'),
        'method': get_env('WEBHOOK_METHOD', 'POST'),
    }

    headers = get_env('WEBHOOK_HEADERS')
    if headers:
        try:
            webhook['headers'] = json.loads(headers)
        except json.JSONDecodeError:
            logger.warning("[Config] WEBHOOK_HEADERS 不是合法 JSON，忽略")

    msg_type = get_env('WEBHOOK_MSG_TYPE')
    if msg_type:
        webhook['msg_type'] = msg_type
    at_mobiles = get_env('WEBHOOK_AT_MOBILES')
    if at_mobiles:
        webhook['at_mobiles'] = _split_env_list(at_mobiles)
    at_all = get_env('WEBHOOK_AT_ALL')
    if at_all is not None:
        webhook['at_all'] = _env_bool(at_all)

    template = get_env('WEBHOOK_TEMPLATE')
    if template:
        try:
            webhook['template'] = json.loads(template)
        except json.JSONDecodeError:
            logger.warning("[Config] WEBHOOK_TEMPLATE 不是合法 JSON，忽略")

    return webhook


def get_telegram_from_env() -> Optional[Dict[str, Any]]:
    """从环境变量获取 Telegram 配置"""
    bot_token = get_env('TG_BOT_TOKEN')
    if not bot_token:
        return None
    return {
        'bot_token': bot_token,
        'chat_id': get_env('TG_CHAT_ID', ''),
    }


def get_bark_from_env() -> Optional[Dict[str, Any]]:
    """从环境变量获取 Bark 配置"""
    device_key = get_env('BARK_DEVICE_KEY')
    if not device_key:
        return None
    return {
        'device_key': device_key,
        'server': get_env('BARK_SERVER', 'https://api.day.app'),
        'is_archive': _env_bool(get_env('BARK_IS_ARCHIVE', 'false')),
    }


def get_notifyx_from_env() -> Optional[Dict[str, Any]]:
    """从环境变量获取 NotifyX 配置"""
    api_key = get_env('NOTIFYX_API_KEY')
    if not api_key:
        return None
    return {'api_key': api_key}


def get_email_from_env() -> Optional[Dict[str, Any]]:
    """从环境变量获取邮件（Resend）配置"""
    api_key = get_env('RESEND_API_KEY')
    if not api_key:
        return None
    return {
        'api_key': api_key,
        'from': get_env('EMAIL_FROM', ''),
        'from_name': get_env('EMAIL_FROM_NAME', ''),
        'to': _split_env_list(get_env('EMAIL_TO', '')),
    }


# 各通知渠道的环境变量加载函数
CHANNEL_ENV_LOADERS = (
    ('webhook', get_webhook_from_env),
    ('telegram', get_telegram_from_env),
    ('bark', get_bark_from_env),
    ('notifyx', get_notifyx_from_env),
    ('email', get_email_from_env),
)


def load_settings_from_env(settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """环境变量覆盖系统设置"""
    settings = dict(settings or {})

    timezone_name = get_env('TIMEZONE')
    if timezone_name:
        settings['timezone'] = timezone_name

    notification_hours = get_env('NOTIFICATION_HOURS')
    if notification_hours is not None:
        settings['notification_hours'] = _split_env_list(notification_hours)

    enabled_notifiers = get_env('ENABLED_NOTIFIERS')
    if enabled_notifiers is not None:
        settings['enabled_notifiers'] = _split_env_list(enabled_notifiers)

    show_lunar = get_env('SHOW_LUNAR')
    if show_lunar is not None:
        settings['show_lunar'] = _env_bool(show_lunar)

    data_file = get_env('DATA_FILE')
    if data_file:
        settings['data_file'] = data_file

    for key, env_key in (('check_interval_seconds', 'CHECK_INTERVAL_SECONDS'), ('metrics_port', 'METRICS_PORT')):
        value = get_env(env_key)
        if value:
            try:
                settings[key] = int(value)
            except (ValueError, TypeError):
                logger.warning(f"{env_key} 值无效: {value}，忽略")

    return settings


# 全局配置缓存和锁
_config_cache: Optional[Dict[str, Any]] = None
_config_lock = Lock()
_config_observer: Optional[Observer] = None
_config_callback: Optional[Callable] = None
_config_listeners: List[Callable[[Dict[str, Any]], None]] = []
_last_config_hash: Optional[str] = None


def register_config_listener(listener: Callable[[Dict[str, Any]], None]) -> None:
    """注册配置变更监听器"""
    with _config_lock:
        if listener not in _config_listeners:
            _config_listeners.append(listener)
            logger.debug(f"[Config] 已注册配置监听器: {listener.__name__}")


def unregister_config_listener(listener: Callable[[Dict[str, Any]], None]) -> None:
    """注销配置变更监听器"""
    with _config_lock:
        if listener in _config_listeners:
            _config_listeners.remove(listener)
            logger.debug(f"[Config] 已注销配置监听器: {listener.__name__}")


def _notify_config_listeners(config: Dict[str, Any]) -> None:
    """通知所有配置监听器（仅在配置实际变化时）"""
    global _last_config_hash
    config_str = json.dumps(config, sort_keys=True, ensure_ascii=False)
    config_hash = hashlib.md5(config_str.encode()).hexdigest()

    if config_hash == _last_config_hash:
        logger.debug("[Config] 配置未变化，跳过通知监听器")
        return

    _last_config_hash = config_hash
    for listener in _config_listeners[:]:
        try:
            listener(config)
        except Exception as e:
            logger.error(f"[Config] 监听器 {listener.__name__} 执行失败: {e}")


class ConfigFileHandler(FileSystemEventHandler):
    """配置文件变化处理器"""

    def __init__(self, config_file: str, callback):
        self.config_file = Path(config_file).resolve()
        self.callback = callback

    def _handle(self, event, action: str) -> None:
        if event.is_directory:
            return

        event_path = Path(event.src_path).resolve()
        if event_path == self.config_file:
            logger.info(f"[Config] 检测到配置文件{action}: {event_path}")
            self.callback()

    def on_modified(self, event):
        self._handle(event, '变化')

    def on_created(self, event):
        self._handle(event, '创建')


def start_config_watcher(config_file: str = DEFAULT_CONFIG_FILE, callback: Optional[Callable] = None) -> None:
    """启动配置文件监听器"""
    global _config_observer, _config_callback

    if _config_observer is not None:
        stop_config_watcher()

    _config_callback = callback or clear_config_cache

    _config_observer = Observer()
    handler = ConfigFileHandler(config_file, _config_callback)

    # 监听配置文件所在目录
    config_path = Path(config_file)
    watch_path = config_path.parent.resolve()

    _config_observer.schedule(handler, str(watch_path), recursive=False)
    _config_observer.start()

    logger.info(f"[Config] 开始监听配置文件: {config_path}")


def stop_config_watcher() -> None:
    """停止配置文件监听器"""
    global _config_observer

    if _config_observer is not None:
        _config_observer.stop()
        _config_observer.join()
        _config_observer = None
        logger.info("[Config] 已停止配置文件监听")


def clear_config_cache() -> None:
    """清除配置缓存"""
    global _config_cache, _last_config_hash
    with _config_lock:
        _config_cache = None
        _last_config_hash = None
        logger.debug("[Config] 配置缓存已清除")


def _build_config_from_env() -> Dict[str, Any]:
    config: Dict[str, Any] = {'settings': load_settings_from_env()}
    for section, loader in CHANNEL_ENV_LOADERS:
        value = loader()
        if value:
            config[section] = value
    return config


def load_config_with_env_vars(config_file: str = DEFAULT_CONFIG_FILE, validate: bool = True) -> Dict[str, Any]:
    """加载配置文件并替换环境变量占位符

    支持三种模式：
    1. 完全从环境变量加载（USE_ENV_CONFIG=true 或配置文件不存在）
    2. 从配置文件加载，但使用环境变量覆盖敏感信息和系统设置
    3. 支持 ${VAR_NAME} 格式的环境变量替换

    Args:
        config_file: 配置文件路径
        validate: 是否验证配置（默认 True，问题以警告记录）

    Returns:
        Dict[str, Any]: 配置字典
    """
    # 首先加载 .env 文件（只在首次调用时加载）
    if not getattr(load_config_with_env_vars, '_env_loaded', False):
        load_env_file()
        load_config_with_env_vars._env_loaded = True

    use_env_config = get_env('USE_ENV_CONFIG', 'false').lower() == 'true'

    if use_env_config:
        logger.info("[Config] 使用完全环境变量配置模式")
        config = _build_config_from_env()
    elif not os.path.exists(config_file):
        logger.warning(f"[Config] 配置文件不存在: {config_file}，尝试从环境变量加载")
        config = _build_config_from_env()
    else:
        with open(config_file, 'r', encoding='utf-8') as f:
            content = f.read()

        # 替换 ${VAR_NAME} 格式的环境变量
        pattern = r'\$\{([^}]+)\}'

        def replace_env(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        content = re.sub(pattern, replace_env, content)
        config = json.loads(content)

        # 环境变量覆盖各通知渠道配置
        for section, loader in CHANNEL_ENV_LOADERS:
            env_value = loader()
            if env_value:
                merged = dict(config.get(section) or {})
                merged.update(env_value)
                config[section] = merged

        config['settings'] = load_settings_from_env(config.get('settings'))

    config_version = config.get('version')
    if config_version:
        logger.info(f"[Config] 配置版本: {config_version}")

    if validate:
        app_config = AppConfig.from_dict(config)
        errors = app_config.validate()
        if errors:
            error_messages = []
            for section, section_errors in errors.items():
                error_messages.append(f"  {section}:")
                for err in section_errors:
                    error_messages.append(f"    - {err}")
            logger.warning(f"配置验证发现以下问题:\n" + "\n".join(error_messages))

    logger.debug(f"配置加载完成: {json.dumps(mask_sensitive_data(config), ensure_ascii=False)}")

    _notify_config_listeners(config)

    return config


def load_config(config_file: str = DEFAULT_CONFIG_FILE) -> Dict[str, Any]:
    """加载配置，环境变量优先于配置文件"""
    return load_config_with_env_vars(config_file)


def get_config(config_file: str = DEFAULT_CONFIG_FILE, use_cache: bool = True) -> Dict[str, Any]:
    """获取配置，带缓存和自动重载"""
    global _config_cache

    if use_cache:
        with _config_lock:
            if _config_cache is not None:
                return _config_cache

    config = load_config_with_env_vars(config_file)

    with _config_lock:
        _config_cache = config

    return config


def _mask_secret(value: str) -> str:
    if len(value) > 8:
        return value[:4] + '***' + value[-4:]
    return '***'


def mask_sensitive_data(config: Dict[str, Any]) -> Dict[str, Any]:
    """脱敏处理，用于日志输出"""
    masked = copy.deepcopy(config)

    webhook = masked.get('webhook')
    if isinstance(webhook, dict) and webhook.get('url'):
        url = webhook['url']
        if 'hook/' in url:
            webhook['url'] = url[:url.rfind('hook/') + 5] + '***'
        if webhook.get('headers'):
            webhook['headers'] = {k: '***' for k in webhook['headers']}

    telegram = masked.get('telegram')
    if isinstance(telegram, dict) and telegram.get('bot_token'):
        telegram['bot_token'] = _mask_secret(telegram['bot_token'])

    bark = masked.get('bark')
    if isinstance(bark, dict) and bark.get('device_key'):
        bark['device_key'] = _mask_secret(bark['device_key'])

    for section in ('notifyx', 'email'):
        channel = masked.get(section)
        if isinstance(channel, dict) and channel.get('api_key'):
            channel['api_key'] = _mask_secret(channel['api_key'])

    return masked
