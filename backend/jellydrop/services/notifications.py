"""处理结果通知模块

OutcomeListener 是处理结果的回调接口，调度器在工作线程中调用它，
监听器抛出的异常只记录日志，不影响处理结果。

JellyfinLibraryScanner 在传输成功后请求 Jellyfin 刷新媒体库。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import requests
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import Settings
from ..core.models import MediaCategory

if TYPE_CHECKING:
    from .media.types import ProcessOutcome

CONNECT_TIMEOUT = 10
READ_TIMEOUT = 30

retry_config = {
    'stop': stop_after_attempt(3),  # 最多尝试3次
    'wait': wait_exponential(multiplier=1, min=1, max=10),  # 指数退避策略
    'retry': retry_if_exception_type((
        requests.exceptions.Timeout,
        requests.exceptions.ConnectionError,
    )),
    'reraise': True,  # 重试失败后抛出原始异常
}

# Jellyfin 常见错误状态码的排查提示
STATUS_HINTS = {
    400: "Bad Request",
    401: "Unauthorized. Check JELLYFIN_API_KEY",
    403: "Forbidden. API key may lack permissions",
    404: "Not Found. Check that JELLYFIN_SERVER points at the Jellyfin API",
    500: "Internal Server Error. Check Jellyfin server logs",
}


class OutcomeListener:
    """处理结果监听器基类，默认什么都不做"""

    def on_transfer_success(self, category: MediaCategory) -> None:
        """某个分类有新内容入库"""

    def on_outcome(self, outcome: "ProcessOutcome") -> None:
        """每个项目的最终结果"""


class JellyfinLibraryScanner(OutcomeListener):
    """传输成功后触发 Jellyfin 媒体库刷新

    Args:
        server: Jellyfin 地址，例如 http://localhost:8096
        api_key: Jellyfin API 密钥
        categories: 需要刷新的分类
        session: 可选的 requests 会话
    """

    def __init__(
        self,
        server: str,
        api_key: str,
        categories: frozenset[MediaCategory] = frozenset(MediaCategory),
        session: Optional[requests.Session] = None,
    ):
        self.server = server.rstrip("/")
        self.api_key = api_key
        self.categories = categories
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["JellyfinLibraryScanner"]:
        """根据配置创建；未配置地址、密钥或未开启任何分类时返回 None"""
        if not settings.jellyfin_enabled:
            return None
        categories = set()
        if settings.ENABLE_JELLYFIN_SCAN_MOVIES:
            categories.add(MediaCategory.MOVIES)
        if settings.ENABLE_JELLYFIN_SCAN_SHOWS:
            categories.add(MediaCategory.SHOWS)
        return cls(settings.JELLYFIN_SERVER, settings.JELLYFIN_API_KEY, frozenset(categories))

    @property
    def refresh_url(self) -> str:
        return f"{self.server}/Library/Refresh"

    @retry(**retry_config)
    def _post_refresh(self) -> requests.Response:
        return self.session.post(
            self.refresh_url,
            headers={"X-Emby-Token": self.api_key},
            timeout=(CONNECT_TIMEOUT, READ_TIMEOUT),
        )

    def trigger_scan(self, category: MediaCategory) -> bool:
        """请求刷新媒体库

        Returns:
            bool: 服务器返回 2xx 时为 True
        """
        ctx_logger = logger.bind(category=str(category))
        try:
            response = self._post_refresh()
        except requests.exceptions.RequestException as e:
            ctx_logger.error(f"无法连接 Jellyfin，检查网络或 JELLYFIN_SERVER 地址: {e}")
            return False

        if 200 <= response.status_code < 300:
            ctx_logger.info(f"已触发 Jellyfin 媒体库刷新 (HTTP {response.status_code})")
            return True

        hint = STATUS_HINTS.get(response.status_code, "unexpected response")
        ctx_logger.error(f"触发 Jellyfin 媒体库刷新失败: HTTP {response.status_code} {hint}")
        return False

    def on_transfer_success(self, category: MediaCategory) -> None:
        if category not in self.categories:
            logger.debug(f"{category} 未开启 Jellyfin 刷新，跳过")
            return
        self.trigger_scan(category)


def build_listeners(settings: Settings) -> list[OutcomeListener]:
    """根据配置创建启用的监听器列表"""
    listeners: list[OutcomeListener] = []
    scanner = JellyfinLibraryScanner.from_settings(settings)
    if scanner is not None:
        listeners.append(scanner)
    return listeners
