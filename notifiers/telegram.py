#!/usr/bin/env python3
"""
Telegram Bot 通知渠道
"""
from typing import Any, Dict, List

import requests

from config_validator import TelegramConfig
from .base import BaseNotifier

TELEGRAM_API_BASE = 'https://api.telegram.org'


class TelegramNotifier(BaseNotifier):
    """通过 Bot API sendMessage 发送 Markdown 消息"""

    name = 'telegram'

    def __init__(self, config: TelegramConfig, api_base: str = TELEGRAM_API_BASE, **kwargs):
        super().__init__(**kwargs)
        self.config = config
        self.api_base = api_base.rstrip('/')

    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        if not self.config.bot_token or not self.config.chat_id:
            raise ValueError("Telegram 未配置 bot_token 或 chat_id")

        return {
            'method': 'POST',
            'url': f"{self.api_base}/bot{self.config.bot_token}/sendMessage",
            'json': {
                'chat_id': self.config.chat_id,
                'text': f"*{title}*\n\n{body}",
                'parse_mode': 'Markdown',
            },
        }

    def is_success(self, response: requests.Response) -> bool:
        return self._json_body(response).get('ok') is True
