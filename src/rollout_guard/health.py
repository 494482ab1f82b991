"""ロールバック後に参照するヘルスプローブ"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

import httpx
import structlog

logger = structlog.stdlib.get_logger(__name__)


class HealthProbe(ABC):
    """ヘルスプローブ抽象基底クラス。結果は正常/異常の二値のみ。"""

    @abstractmethod
    async def check_health(self) -> bool: ...


class InMemoryHealthProbe(HealthProbe):
    """テスト用の固定値ヘルスプローブ。"""

    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.calls = 0

    async def check_health(self) -> bool:
        self.calls += 1
        return self.healthy


class HttpHealthProbe(HealthProbe):
    """HTTP GET でバックエンドの稼働状態を確認する HealthProbe 実装。

    HTTP 200 かつ JSON ボディの ``status`` が ``healthy_statuses`` に含まれる場合のみ正常。
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        healthy_statuses: Iterable[str] = ("operational",),
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._healthy_statuses = frozenset(healthy_statuses)

    async def check_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(self._url)
        except httpx.HTTPError as e:
            logger.error("Backend health check failed", url=self._url, error=str(e))
            return False

        if resp.status_code != 200:
            logger.error(
                "Backend health check failed",
                url=self._url,
                status_code=resp.status_code,
            )
            return False
        try:
            status = resp.json().get("status")
        except (ValueError, AttributeError):
            logger.error("Invalid response body from health check", url=self._url)
            return False

        healthy = status in self._healthy_statuses
        logger.info("Backend health check", url=self._url, status=status, healthy=healthy)
        return healthy
