#!/usr/bin/env python3
"""
Webhook 通知渠道
支持多种 webhook 类型：飞书、钉钉、企业微信、自定义（可配置 JSON 模板与请求头）
"""
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from config_validator import WebhookConfig, WebhookType
from timezone_clock import format_in_timezone
from logger import get_logger
from .base import BaseNotifier

logger = get_logger('webhook_notifier')

TEMPLATE_PLACEHOLDER = re.compile(r'\{\{\s*([a-zA-Z0-9_]+)\s*\}\}')


def _escape_for_json(value: Any) -> str:
    """转义为 JSON 字符串内容（不含两侧引号）"""
    if value is None:
        return ''
    return json.dumps(str(value), ensure_ascii=False)[1:-1]


def apply_template(template: Any, data: Dict[str, Any]) -> Any:
    """
    把模板中的 {{key}} 占位符替换为对应值

    模板先序列化为 JSON 字符串再替换，未知占位符替换为空字符串。

    Raises:
        ValueError: 模板不是合法 JSON
    """
    if isinstance(template, str):
        template = json.loads(template)
    template_string = json.dumps(template, ensure_ascii=False)

    def replace(match):
        key = match.group(1)
        return _escape_for_json(data[key]) if key in data else ''

    return json.loads(TEMPLATE_PLACEHOLDER.sub(replace, template_string))


class WebhookNotifier(BaseNotifier):
    """Webhook 发送渠道"""

    name = 'webhook'

    def __init__(self, config: WebhookConfig, timezone_name: str = 'UTC', **kwargs):
        """
        初始化 Webhook 渠道

        Args:
            config: Webhook 配置
            timezone_name: 消息中时间戳使用的时区
        """
        super().__init__(**kwargs)
        self.config = config
        self.webhook_type = config.type
        self.timezone_name = timezone_name

    @property
    def plain_text(self) -> bool:
        # 自定义类型和企业微信文本消息不渲染 markdown
        if self.webhook_type == WebhookType.WECOM:
            return self.config.msg_type == 'text'
        return self.webhook_type == WebhookType.CUSTOM

    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        if not self.config.url:
            raise ValueError("Webhook 未配置 url")

        if self.webhook_type == WebhookType.FEISHU:
            payload = self._feishu_payload(title, body)
        elif self.webhook_type == WebhookType.DINGTALK:
            payload = self._dingtalk_payload(title, body)
        elif self.webhook_type == WebhookType.WECOM:
            payload = self._wecom_payload(title, body)
        else:
            payload = self._custom_payload(title, body, tags)

        headers = {'Content-Type': 'application/json'}
        headers.update(self.config.headers or {})

        return {
            'method': self.config.method or 'POST',
            'url': self.config.url,
            'json': payload,
            'headers': headers,
        }

    # ==================== 飞书 ====================

    def _feishu_payload(self, title: str, body: str) -> Dict[str, Any]:
        return {
            "msg_type": "interactive",
            "card": {
                "header": {
                    "title": {
                        "tag": "plain_text",
                        "content": title
                    },
                    "template": "orange"
                },
                "elements": [
                    {
                        "tag": "markdown",
                        "content": body
                    }
                ]
            }
        }

    # ==================== 钉钉 ====================

    def _dingtalk_payload(self, title: str, body: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "msgtype": "markdown",
            "markdown": {
                "title": title,
                "text": f"### {title}\n\n{body}"
            }
        }
        if self.config.at_all or self.config.at_mobiles:
            payload["at"] = {
                "atMobiles": self.config.at_mobiles,
                "isAtAll": self.config.at_all
            }
        return payload

    # ==================== 企业微信 ====================

    def _wecom_payload(self, title: str, body: str) -> Dict[str, Any]:
        if self.config.msg_type == 'markdown':
            # markdown 消息不支持 @ 成员
            return {
                "msgtype": "markdown",
                "markdown": {
                    "content": f"### {title}\n\n{body}"
                }
            }

        text: Dict[str, Any] = {"content": f"{title}\n\n{body}"}
        if self.config.at_all:
            text["mentioned_list"] = ["@all"]
        elif self.config.at_mobiles:
            text["mentioned_mobile_list"] = self.config.at_mobiles
        return {
            "msgtype": "text",
            "text": text
        }

    def is_success(self, response: requests.Response) -> bool:
        if self.webhook_type in (WebhookType.DINGTALK, WebhookType.WECOM):
            # 机器人接口 HTTP 200 时以 errcode 区分成功失败
            return self._json_body(response).get('errcode', 0) == 0
        return True

    # ==================== 自定义格式 ====================

    def template_data(self, title: str, body: str, tags: List[str],
                      now: Optional[datetime] = None) -> Dict[str, Any]:
        """模板可用的占位符数据"""
        timestamp = format_in_timezone(now or datetime.now(timezone.utc), self.timezone_name, 'datetime')
        tags_block = '\n'.join(f"- {tag}" for tag in tags)
        tags_line = f"标签：{'、'.join(tags)}" if tags else ''
        sections = [title, body, tags_line, f"发送时间：{timestamp}"]
        message = '\n\n'.join(s for s in sections if s and s.strip())

        return {
            'title': title,
            'content': body,
            'tags': tags_block,
            'tagsLine': tags_line,
            'rawTags': ','.join(tags),
            'timestamp': timestamp,
            'source': self.config.source,
            'formattedMessage': message,
            'message': message,
        }

    def _custom_payload(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        data = self.template_data(title, body, tags)

        if self.config.template:
            try:
                return apply_template(self.config.template, data)
            except ValueError as e:
                logger.warning(f"Webhook 消息模板格式错误，使用默认格式: {e}")

        return {
            'title': title,
            'content': body,
            'tags': tags,
            'tagsLine': data['tagsLine'],
            'timestamp': data['timestamp'],
            'source': self.config.source,
            'message': data['message'],
        }
