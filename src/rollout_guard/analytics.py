"""analytics シンクのインターフェースと投げっぱなしの記録"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

logger = structlog.stdlib.get_logger(__name__)


class AnalyticsSink(Protocol):
    """名前付きイベントと任意のプロパティを受け取る。"""

    def record(self, event_name: str, properties: Mapping[str, Any]) -> None: ...


@dataclass
class AnalyticsEvent:
    """:class:`InMemoryAnalyticsSink` が記録するイベント。"""

    name: str
    properties: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryAnalyticsSink:
    """テスト用インメモリ analytics sink。"""

    def __init__(self) -> None:
        self._events: list[AnalyticsEvent] = []

    @property
    def events(self) -> list[AnalyticsEvent]:
        """記録済みイベントのコピーを返す。"""
        return list(self._events)

    def named(self, event_name: str) -> list[AnalyticsEvent]:
        return [e for e in self._events if e.name == event_name]

    def record(self, event_name: str, properties: Mapping[str, Any]) -> None:
        self._events.append(AnalyticsEvent(name=event_name, properties=dict(properties)))


class LoggingAnalyticsSink:
    """イベントを構造化ログに書き出す。"""

    def __init__(self, logger_name: str = "rollout_guard.analytics") -> None:
        self._logger = structlog.stdlib.get_logger(logger_name)

    def record(self, event_name: str, properties: Mapping[str, Any]) -> None:
        self._logger.info("analytics_event", event_name=event_name, **properties)


def record_event(
    sink: AnalyticsSink | None, event_name: str, properties: Mapping[str, Any]
) -> None:
    """シンクの失敗を伝播させずにイベントを転送する。"""
    if sink is None:
        return
    try:
        sink.record(event_name, properties)
    except Exception as e:
        logger.warning("Failed to record analytics event", event_name=event_name, error=str(e))
