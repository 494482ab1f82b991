"""重大アラート発生時にロールバックを起動するトリガー"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from .alerts import AlertEngine, AlertSubscription
from .exceptions import RolloutGuardError
from .models import Alert, AlertSeverity
from .rollback import RollbackOrchestrator

logger = structlog.stdlib.get_logger(__name__)


class AutoRollbackTrigger:
    """アラートを購読し、イベントループ上で一度に1件だけロールバックを実行する。

    ``min_severity`` 未満のアラート、および前回のロールバックタスクが
    実行中に発生したアラートは無視する。``track`` がワーカースレッドから
    呼ばれた場合は、attach 時（または最初に観測した）ループへ
    スレッドセーフに投入する。
    """

    def __init__(
        self,
        engine: AlertEngine,
        orchestrator: RollbackOrchestrator,
        min_severity: AlertSeverity = AlertSeverity.CRITICAL,
        validate: bool = True,
    ) -> None:
        self._engine = engine
        self._orchestrator = orchestrator
        self._min_severity = min_severity
        self._validate = validate
        self._subscription: AlertSubscription | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def attach(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """アラート購読を開始する。

        Args:
            loop: ロールバックを実行するループ。省略時は実行中のループ。
        """
        if loop is None:
            with contextlib.suppress(RuntimeError):
                loop = asyncio.get_running_loop()
        if loop is not None:
            self._loop = loop
        if self._subscription is None:
            self._subscription = self._engine.on_alert(self._on_alert)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def wait(self) -> None:
        """実行中のロールバックタスクがあれば完了を待つ。"""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        self.detach()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    def _on_alert(self, alert: Alert) -> None:
        if alert.severity.rank < self._min_severity.rank:
            return
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None or self._loop.is_closed():
            self._loop = running
        loop = self._loop
        if loop is None:
            logger.warning("No event loop bound; automatic rollback skipped", alert_id=alert.id)
            return
        if loop is running:
            self._schedule(alert)
            return
        try:
            loop.call_soon_threadsafe(self._schedule, alert)
        except RuntimeError:
            logger.warning("Event loop closed; automatic rollback skipped", alert_id=alert.id)

    def _schedule(self, alert: Alert) -> None:
        # ループスレッド上でのみ呼ばれる
        if self.in_flight:
            logger.info("Rollback already in progress", alert_id=alert.id)
            return
        assert self._loop is not None
        self._task = self._loop.create_task(self._run(alert))

    async def _run(self, alert: Alert) -> None:
        reason = (
            f"{alert.severity.value} alert on {alert.metric.value}: "
            f"{alert.value} >= {alert.threshold}"
        )
        try:
            await self._orchestrator.execute_rollback_plan(reason=reason)
            if self._validate:
                await self._orchestrator.validate_post_rollback()
        except RolloutGuardError as e:
            logger.error("Automatic rollback failed", alert_id=alert.id, code=e.code, error=str(e))
