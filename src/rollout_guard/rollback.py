"""緊急ロールバックの実行とロールバック後の検証"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from . import metrics
from .alerts import AlertEngine
from .analytics import AnalyticsSink, record_event
from .exceptions import (
    FeatureFlagError,
    RollbackFailed,
    RolloutGuardErrorCodes,
)
from .flags import FeatureFlagStore
from .health import HealthProbe
from .models import FeatureFlag
from .notification import NotificationService

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_REASON = "Monitoring alerts triggered automatic rollback"


@dataclass
class RollbackConfig:
    """ロールバック設定。"""

    at_risk_flag: FeatureFlag = FeatureFlag.BACKEND_V1
    settle_interval_seconds: float = 5.0
    health_timeout_seconds: float = 5.0
    notification_timeout_seconds: float = 10.0
    notification_title: str = "Backend Rollback Initiated"
    notification_message: str = "Automatic rollback triggered due to monitoring alerts"


@dataclass
class RollbackReport:
    """実行したロールバック計画の結果。"""

    flag: FeatureFlag
    reason: str
    cleared_alert_ids: list[str] = field(default_factory=list)
    flag_persisted: bool = True
    notified: bool = False
    executed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class RollbackOrchestrator:
    """リスクのあるフラグを無効化し、システムの回復を確認する。

    :meth:`execute_rollback_plan` のステップ1と2は冪等なので、
    :class:`RollbackFailed` の後はそのまま再試行してよい。
    同時実行は直列化される。
    """

    def __init__(
        self,
        flags: FeatureFlagStore,
        alerts: AlertEngine,
        notifier: NotificationService,
        health_probe: HealthProbe,
        analytics: AnalyticsSink | None = None,
        config: RollbackConfig | None = None,
    ) -> None:
        self._flags = flags
        self._alerts = alerts
        self._notifier = notifier
        self._health_probe = health_probe
        self._analytics = analytics
        self._config = config or RollbackConfig()
        self._lock = asyncio.Lock()

    @property
    def config(self) -> RollbackConfig:
        return self._config

    async def execute_rollback_plan(self, reason: str | None = None) -> RollbackReport:
        """ロールバック手順を順に実行する。

        Raises:
            RollbackFailed: フラグの無効化またはアラートのクリアに失敗した。
        """
        reason = reason or DEFAULT_REASON
        flag = self._config.at_risk_flag
        async with self._lock:
            logger.warning("Initiating rollback procedure", flag=flag.value, reason=reason)

            try:
                persisted = self._flags.deactivate(flag)
            except Exception as e:
                raise self._failed(f"failed to deactivate {flag.value}: {e}", e) from e
            if not persisted:
                logger.warning("Rollback flag state was not persisted", flag=flag.value)

            try:
                cleared = [
                    alert.id
                    for alert in self._alerts.active_alerts
                    if self._alerts.clear(alert.id)
                ]
            except Exception as e:
                raise self._failed(f"failed to clear alerts: {e}", e) from e

            notified = await self._notify_stakeholders()

            report = RollbackReport(
                flag=flag,
                reason=reason,
                cleared_alert_ids=cleared,
                flag_persisted=persisted,
                notified=notified,
            )
            logger.error(
                "Rollback executed",
                flag=flag.value,
                cleared_alerts=len(cleared),
                notified=notified,
            )
            metrics.rollbacks_total.add(1, {"flag": flag.value})
            record_event(
                self._analytics,
                "rollback_executed",
                {
                    "reason": reason,
                    "flag": flag.value,
                    "cleared_alerts": len(cleared),
                    "notified": notified,
                },
            )
            return report

    async def validate_post_rollback(self) -> bool:
        """フラグ状態、バックエンドのヘルス、安定待ち後のアラートを確認する。

        安定待ちはキャンセル可能で、キャンセルは呼び出し元へ伝播する。

        Raises:
            FeatureFlagError: リスクのあるフラグが再び有効になっている。
            RollbackFailed: ヘルスチェック失敗、またはアラートが残っている。
        """
        flag = self._config.at_risk_flag
        logger.info("Validating post-rollback state", flag=flag.value)

        if self._flags.is_enabled(flag):
            metrics.rollback_failures_total.add(1, {"stage": "validate"})
            raise FeatureFlagError(
                code=RolloutGuardErrorCodes.FLAG_STILL_ENABLED,
                message=f"{flag.value} is enabled after rollback",
            )

        if not await self._probe_health():
            raise self._failed(
                "health check failed",
                code=RolloutGuardErrorCodes.HEALTH_CHECK_FAILED,
                stage="validate",
            )

        try:
            await asyncio.sleep(self._config.settle_interval_seconds)
        except asyncio.CancelledError:
            logger.warning("Post-rollback validation cancelled", flag=flag.value)
            raise

        remaining = self._alerts.active_alerts
        if remaining:
            raise self._failed(
                "alerts still active",
                code=RolloutGuardErrorCodes.ALERTS_STILL_ACTIVE,
                stage="validate",
            )

        logger.info("Post-rollback validation successful", flag=flag.value)
        return True

    async def _notify_stakeholders(self) -> bool:
        try:
            sent = await asyncio.wait_for(
                self._notifier.send_urgent(
                    self._config.notification_title,
                    self._config.notification_message,
                ),
                timeout=self._config.notification_timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Stakeholder notification timed out",
                timeout_seconds=self._config.notification_timeout_seconds,
            )
            return False
        except Exception as e:
            logger.error("Stakeholder notification failed", error=str(e))
            return False
        if not sent:
            logger.error("Stakeholder notification was not delivered")
        return bool(sent)

    async def _probe_health(self) -> bool:
        try:
            return bool(
                await asyncio.wait_for(
                    self._health_probe.check_health(),
                    timeout=self._config.health_timeout_seconds,
                )
            )
        except TimeoutError:
            logger.error(
                "Health probe timed out",
                timeout_seconds=self._config.health_timeout_seconds,
            )
            return False
        except Exception as e:
            logger.error("Health probe failed", error=str(e))
            return False

    def _failed(
        self,
        reason: str,
        cause: Exception | None = None,
        code: str = RolloutGuardErrorCodes.ROLLBACK_FAILED,
        stage: str = "execute",
    ) -> RollbackFailed:
        logger.critical("Rollback failed", reason=reason, stage=stage)
        metrics.rollback_failures_total.add(1, {"stage": stage})
        return RollbackFailed(reason, code=code, cause=cause)
