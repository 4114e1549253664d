#!/usr/bin/env python3
"""
日志模块

所有模块通过 get_logger('<模块名>') 取得 renewal_reminder.<模块名> 子 logger，
输出格式由环境变量控制：
  LOG_LEVEL   日志级别，默认 INFO
  LOG_FORMAT  text / json
  LOG_FILE    额外写入的滚动日志文件
"""
import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = 'renewal_reminder'
SERVICE_NAME = 'renewal-reminder'

TEXT_FORMAT = '%(asctime)s [%(levelname)-8s] %(name)s: %(message)s'
JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'

# 第三方库日志过于啰嗦，只保留警告
NOISY_LOGGERS = ('urllib3', 'watchdog')


def _parse_level(level: Optional[str]) -> int:
    numeric_level = getattr(logging, (level or 'INFO').upper(), None)
    return numeric_level if isinstance(numeric_level, int) else logging.INFO


def build_formatter(log_format: Optional[str] = None) -> logging.Formatter:
    """按 LOG_FORMAT 构造 formatter，json 格式附带 service 字段"""
    log_format = (log_format or os.environ.get('LOG_FORMAT', 'text')).lower()
    if log_format == 'json':
        return jsonlogger.JsonFormatter(
            JSON_FORMAT,
            rename_fields={'levelname': 'level', 'name': 'logger'},
            static_fields={'service': SERVICE_NAME},
            json_ensure_ascii=False
        )
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    配置根 logger（重复调用只调整级别，不重复添加 handler）

    Args:
        level: 日志级别 (DEBUG/INFO/WARNING/ERROR)，默认读取 LOG_LEVEL
        log_file: 日志文件路径，None 表示只输出到控制台

    Returns:
        logging.Logger: 根 logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(_parse_level(level or os.environ.get('LOG_LEVEL')))

    if logger.handlers:
        return logger

    formatter = build_formatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def set_log_level(level: str) -> None:
    """运行时调整日志级别（命令行 --verbose 使用）"""
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(_parse_level(level))


logger = setup_logging(log_file=os.environ.get('LOG_FILE'))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """返回 renewal_reminder.<name> 子 logger，name 为空时返回根 logger"""
    if name:
        return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
    return logger
