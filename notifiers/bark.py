#!/usr/bin/env python3
"""
Bark 推送通知渠道（iOS）
"""
from typing import Any, Dict, List

import requests

from config_validator import BarkConfig
from .base import BaseNotifier


class BarkNotifier(BaseNotifier):
    """Bark /push 接口，正文为纯文本"""

    name = 'bark'
    plain_text = True

    def __init__(self, config: BarkConfig, **kwargs):
        super().__init__(**kwargs)
        self.config = config

    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        if not self.config.device_key:
            raise ValueError("Bark 未配置 device_key")

        payload: Dict[str, Any] = {
            'title': title,
            'body': body,
            'device_key': self.config.device_key,
        }
        if self.config.is_archive:
            payload['isArchive'] = 1
        if tags:
            payload['group'] = tags[0]

        return {
            'method': 'POST',
            'url': f"{self.config.server.rstrip('/')}/push",
            'json': payload,
            'headers': {'Content-Type': 'application/json; charset=utf-8'},
        }

    def is_success(self, response: requests.Response) -> bool:
        # Bark 返回 code 200 表示成功
        return self._json_body(response).get('code') == 200
