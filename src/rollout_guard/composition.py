"""プロセス単位のコントロールプレーン組み立て"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from .alerts import AlertEngine
from .analytics import AnalyticsSink, LoggingAnalyticsSink
from .controller import RolloutController
from .exceptions import ConfigurationError, RolloutGuardErrorCodes
from .flags import FeatureFlagStore
from .health import HealthProbe, HttpHealthProbe
from .identity import BucketIdentity, InstallationIdProvider
from .logger import new_logger
from .notification import (
    InMemoryNotificationService,
    NotificationService,
    WebhookNotificationService,
)
from .rollback import RollbackOrchestrator
from .settings import RolloutSettings
from .storage import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore
from .trigger import AutoRollbackTrigger

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class ControlPlane:
    """アプリケーションの組み立て側が所有するコンポーネント一式。"""

    identity: BucketIdentity
    flags: FeatureFlagStore
    controller: RolloutController
    alerts: AlertEngine
    orchestrator: RollbackOrchestrator
    trigger: AutoRollbackTrigger | None = None


def build_control_plane(
    settings: RolloutSettings,
    *,
    storage: KeyValueStore | None = None,
    analytics: AnalyticsSink | None = None,
    notifier: NotificationService | None = None,
    health_probe: HealthProbe | None = None,
    id_provider: InstallationIdProvider | None = None,
    configure_logging: bool = True,
) -> ControlPlane:
    """``settings`` と指定されたコラボレータからコンポーネントを組み立てる。

    永続化済みのフラグ割り当てを読み込んだ後、割り当てのないフラグにだけ
    ``default_flags`` を適用する。``configure_logging`` が真なら
    ``settings.log`` でロガーを設定し、``service_name`` を全ログに束縛する。

    Raises:
        ConfigurationError: ヘルスプローブ未指定かつ ``health.url`` 未設定。
    """
    if configure_logging:
        new_logger(
            settings.log.level,
            settings.log.format,
            service_name=settings.service_name,
        )

    if health_probe is None:
        if not settings.health.url:
            raise ConfigurationError(
                code=RolloutGuardErrorCodes.MISSING_HEALTH_PROBE,
                message="health.url must be set when no health probe is supplied",
            )
        health_probe = HttpHealthProbe(
            settings.health.url,
            timeout_seconds=settings.rollback.health_timeout_seconds,
            healthy_statuses=settings.health.healthy_statuses,
        )

    if storage is None:
        if settings.storage.directory:
            storage = FileKeyValueStore(settings.storage.directory)
        else:
            storage = InMemoryKeyValueStore()

    if analytics is None:
        analytics = LoggingAnalyticsSink()

    if notifier is None:
        if settings.notification.webhook_url:
            notifier = WebhookNotificationService(
                settings.notification.webhook_url,
                timeout_seconds=settings.rollback.notification_timeout_seconds,
            )
        else:
            logger.warning("No notification webhook configured; urgent notifications stay in memory")
            notifier = InMemoryNotificationService()

    identity = BucketIdentity(
        provider=id_provider,
        storage=storage,
        storage_key=settings.storage.installation_id_key,
    )
    flags = FeatureFlagStore(
        identity,
        storage=storage,
        analytics=analytics,
        storage_key=settings.storage.flags_key,
    )
    flags.load()
    persisted = flags.assignments()
    for flag, strategy in settings.default_flags.items():
        if flag not in persisted:
            flags.activate(flag, strategy)

    alerts = AlertEngine(analytics=analytics)
    alerts.configure(settings.alerts)

    orchestrator = RollbackOrchestrator(
        flags,
        alerts,
        notifier,
        health_probe,
        analytics=analytics,
        config=settings.rollback_config(),
    )

    trigger = None
    if settings.rollback.auto_rollback:
        trigger = AutoRollbackTrigger(
            alerts,
            orchestrator,
            min_severity=settings.rollback.auto_rollback_severity,
            validate=settings.rollback.validate_after_rollback,
        )
        trigger.attach()

    return ControlPlane(
        identity=identity,
        flags=flags,
        controller=RolloutController(flags),
        alerts=alerts,
        orchestrator=orchestrator,
        trigger=trigger,
    )
