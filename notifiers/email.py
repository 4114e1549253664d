#!/usr/bin/env python3
"""
邮件通知渠道（Resend API）
"""
import html
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from config_validator import EmailConfig
from timezone_clock import format_in_timezone
from .base import BaseNotifier

RESEND_API_URL = 'https://api.resend.com/emails'

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 0; background-color: #f5f5f5; }}
        .container {{ max-width: 600px; margin: 0 auto; background-color: #ffffff; }}
        .header {{ background: #667eea; padding: 30px 20px; text-align: center; }}
        .header h1 {{ color: white; margin: 0; font-size: 24px; }}
        .content {{ padding: 30px 20px; }}
        .content p {{ color: #666; line-height: 1.6; margin: 16px 0; }}
        .highlight {{ background-color: #e3f2fd; padding: 15px; border-radius: 8px; margin: 20px 0; }}
        .footer {{ background-color: #f8f9fa; padding: 20px; text-align: center; color: #666; font-size: 14px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>📅 {title}</h1>
        </div>
        <div class="content">
            <div class="highlight">
                {content}
            </div>
            <p>此邮件由订阅提醒服务自动发送，请及时处理相关订阅事务。</p>
        </div>
        <div class="footer">
            <p>订阅提醒服务 | 发送时间: {timestamp}</p>
        </div>
    </div>
</body>
</html>"""


class EmailNotifier(BaseNotifier):
    """通过 Resend 发送 HTML 邮件，附纯文本正文"""

    name = 'email'
    plain_text = True

    def __init__(self, config: EmailConfig, timezone_name: str = 'UTC',
                 api_url: str = RESEND_API_URL, **kwargs):
        super().__init__(**kwargs)
        self.config = config
        self.timezone_name = timezone_name
        self.api_url = api_url

    def render_html(self, title: str, body: str, now: Optional[datetime] = None) -> str:
        """正文按行转为 <br>，标题与正文均做 HTML 转义"""
        timestamp = format_in_timezone(now or datetime.now(timezone.utc), self.timezone_name, 'datetime')
        content = '<br>'.join(html.escape(line) for line in body.split('\n'))
        return HTML_TEMPLATE.format(title=html.escape(title), content=content, timestamp=timestamp)

    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        if not self.config.api_key:
            raise ValueError("邮件未配置 api_key")
        if not self.config.from_address or not self.config.to:
            raise ValueError("邮件未配置发件人或收件人")

        return {
            'method': 'POST',
            'url': self.api_url,
            'json': {
                'from': self.config.sender,
                'to': self.config.to,
                'subject': title,
                'html': self.render_html(title, body),
                'text': body,
            },
            'headers': {
                'Authorization': f"Bearer {self.config.api_key}",
                'Content-Type': 'application/json',
            },
        }

    def is_success(self, response: requests.Response) -> bool:
        # Resend 成功时返回邮件 id
        return bool(self._json_body(response).get('id'))
