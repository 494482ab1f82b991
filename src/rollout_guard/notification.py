"""ロールバック時の関係者向け緊急通知"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
import structlog

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class UrgentNotification:
    """緊急通知ペイロード。"""

    title: str
    message: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class NotificationService(ABC):
    """通知サービス抽象基底クラス。"""

    @abstractmethod
    async def send_urgent(self, title: str, message: str) -> bool: ...


class InMemoryNotificationService(NotificationService):
    """テスト用インメモリ通知サービス。"""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self._sent: list[UrgentNotification] = []

    @property
    def sent(self) -> list[UrgentNotification]:
        """送信済み通知のコピーを返す。"""
        return list(self._sent)

    async def send_urgent(self, title: str, message: str) -> bool:
        if not self.succeed:
            return False
        self._sent.append(UrgentNotification(title=title, message=message))
        return True


class WebhookNotificationService(NotificationService):
    """httpx で Webhook に緊急通知を POST する。"""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 10.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    async def send_urgent(self, title: str, message: str) -> bool:
        notification = UrgentNotification(title=title, message=message)
        payload = {
            "id": notification.id,
            "priority": "urgent",
            "title": notification.title,
            "message": notification.message,
            "created_at": notification.created_at.isoformat(),
        }
        try:
            async with httpx.AsyncClient(
                headers=self._headers, timeout=self._timeout
            ) as client:
                resp = await client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Urgent notification failed", url=self._url, error=str(e))
            return False
        if resp.status_code >= 400:
            logger.error(
                "Urgent notification rejected",
                url=self._url,
                status_code=resp.status_code,
            )
            return False
        return True
