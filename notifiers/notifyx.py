#!/usr/bin/env python3
"""
NotifyX 通知渠道
"""
from typing import Any, Dict, List

import requests

from config_validator import NotifyXConfig
from .base import BaseNotifier

NOTIFYX_API_BASE = 'https://www.notifyx.cn/api/v1/send'


class NotifyXNotifier(BaseNotifier):
    """NotifyX 支持 markdown 正文"""

    name = 'notifyx'

    def __init__(self, config: NotifyXConfig, api_base: str = NOTIFYX_API_BASE,
                 description: str = '订阅提醒', **kwargs):
        super().__init__(**kwargs)
        self.config = config
        self.api_base = api_base.rstrip('/')
        self.description = description

    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        if not self.config.api_key:
            raise ValueError("NotifyX 未配置 api_key")

        return {
            'method': 'POST',
            'url': f"{self.api_base}/{self.config.api_key}",
            'json': {
                'title': title,
                'content': f"## {title}\n\n{body}",
                'description': self.description,
            },
        }

    def is_success(self, response: requests.Response) -> bool:
        return self._json_body(response).get('status') == 'queued'
