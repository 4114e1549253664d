#!/usr/bin/env python3
"""
通知渠道抽象基类
定义统一的 notify 接口，封装 HTTP Session 复用与失败重试
"""
import json
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import requests
import requests.adapters
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from notification_formatter import strip_markdown
from logger import get_logger

logger = get_logger('notifier_base')

# HTTP 连接默认常量
DEFAULT_POOL_CONNECTIONS = 10
DEFAULT_POOL_MAXSIZE = 100
DEFAULT_MAX_RETRIES = 3

# 从环境变量读取超时时间，默认 10 秒
REQUEST_TIMEOUT = int(os.environ.get('REQUEST_TIMEOUT', '10'))


def clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """去除空白标签并去重（保持顺序）"""
    result: List[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


class BaseNotifier(ABC):
    """通知渠道抽象基类"""

    name = 'base'
    # 纯文本渠道发送前去除 markdown 标记
    plain_text = False

    def __init__(self, timeout: int = REQUEST_TIMEOUT):
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """获取或创建复用的 HTTP Session"""
        if self._session is None:
            self._session = requests.Session()
            adapter = requests.adapters.HTTPAdapter(
                pool_connections=DEFAULT_POOL_CONNECTIONS,
                pool_maxsize=DEFAULT_POOL_MAXSIZE,
                max_retries=DEFAULT_MAX_RETRIES
            )
            self._session.mount('http://', adapter)
            self._session.mount('https://', adapter)
        return self._session

    def close(self) -> None:
        """关闭 HTTP Session"""
        if self._session:
            self._session.close()
            self._session = None

    def prepare_content(self, title: str, body: str) -> str:
        """按渠道要求调整正文"""
        return strip_markdown(body) if self.plain_text else body

    @abstractmethod
    def build_request(self, title: str, body: str, tags: List[str]) -> Dict[str, Any]:
        """
        构造请求参数

        Returns:
            dict: 传给 Session.request 的参数，必须包含 method 和 url
        """

    def is_success(self, response: requests.Response) -> bool:
        """判断 2xx 响应是否为业务成功，子类可覆盖"""
        return True

    def notify(self, title: str, body: str, tags: Optional[Iterable[str]] = None) -> bool:
        """
        发送通知

        Args:
            title: 通知标题
            body: 通知正文（markdown）
            tags: 标签列表

        Returns:
            bool: 是否发送成功
        """
        try:
            request = self.build_request(title, self.prepare_content(title, body), clean_tags(tags))
        except ValueError as e:
            logger.error(f"[{self.name}] 构造通知请求失败: {e}")
            return False

        logger.info(f"[{self.name}] 准备发送通知: {title}")
        if 'json' in request:
            logger.debug(f"[{self.name}] 请求体: {json.dumps(request['json'], ensure_ascii=False)[:500]}")

        try:
            return self._send_request_with_retry(request)
        except requests.exceptions.Timeout as e:
            logger.error(f"[{self.name}] 请求超时（重试耗尽）: {e}")
            return False
        except requests.exceptions.ConnectionError as e:
            logger.error(f"[{self.name}] 连接错误（重试耗尽）: {e} | 请检查网络连接和渠道配置")
            return False
        except Exception as e:
            logger.error(f"[{self.name}] 发送失败: {type(e).__name__}: {e}", exc_info=True)
            return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=10),
        retry=retry_if_exception_type((requests.exceptions.Timeout, requests.exceptions.ConnectionError)),
        reraise=True
    )
    def _send_request_with_retry(self, request: Dict[str, Any]) -> bool:
        """发送 HTTP 请求的内层方法（可重试）"""
        start_time = time.time()

        request = dict(request)
        method = request.pop('method', 'POST')
        url = request.pop('url')
        request.setdefault('timeout', self.timeout)

        response = self._get_session().request(method, url, **request)

        elapsed_time = time.time() - start_time
        logger.debug(f"[{self.name}] 响应状态码: {response.status_code} | 耗时: {elapsed_time:.2f}s")

        if 200 <= response.status_code < 300:
            if self.is_success(response):
                logger.info(f"[{self.name}] 通知发送成功")
                return True
            logger.error(f"[{self.name}] 通知发送失败，响应: {response.text[:500]}")
            return False
        elif 500 <= response.status_code < 600:
            # 5xx 服务端错误，抛出异常以触发重试
            logger.warning(f"[{self.name}] 服务端错误 HTTP {response.status_code}，将重试")
            raise requests.exceptions.ConnectionError(
                f"Server error: HTTP {response.status_code}"
            )
        else:
            # 4xx 等客户端错误，不重试
            logger.error(f"[{self.name}] 通知发送失败: HTTP {response.status_code} | 响应: {response.text[:500]}")
            return False

    @staticmethod
    def _json_body(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
