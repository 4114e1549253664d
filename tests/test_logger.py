#!/usr/bin/env python3
import json
import logging

from logger import ROOT_LOGGER_NAME, build_formatter, get_logger, set_log_level


def _record(message):
    return logging.LogRecord('renewal_reminder.test', logging.INFO, __file__, 1, message, None, None)


def test_child_logger_name():
    assert get_logger('subscription_store').name == f'{ROOT_LOGGER_NAME}.subscription_store'
    assert get_logger().name == ROOT_LOGGER_NAME


def test_json_formatter_keeps_chinese_and_service_field():
    output = build_formatter('json').format(_record('订阅已更新'))
    data = json.loads(output)
    assert data['message'] == '订阅已更新'
    assert data['level'] == 'INFO'
    assert data['logger'] == 'renewal_reminder.test'
    assert data['service'] == 'renewal-reminder'
    assert '订阅已更新' in output


def test_text_formatter():
    output = build_formatter('text').format(_record('hello'))
    assert '[INFO    ] renewal_reminder.test: hello' in output


def test_set_log_level_accepts_unknown_level():
    root = logging.getLogger(ROOT_LOGGER_NAME)
    previous = root.level
    try:
        set_log_level('debug')
        assert root.level == logging.DEBUG
        set_log_level('nonsense')
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)
