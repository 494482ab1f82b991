"""コントロールプレーンのテスト用共通ビルダー"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from rollout_guard import (
    AlertConfiguration,
    AlertEngine,
    AlertSeverity,
    BucketIdentity,
    FeatureFlagStore,
    InMemoryAnalyticsSink,
    InMemoryHealthProbe,
    InMemoryKeyValueStore,
    InMemoryNotificationService,
    MonitoringMetric,
    RollbackConfig,
    RollbackOrchestrator,
)


@dataclass
class Harness:
    storage: InMemoryKeyValueStore
    analytics: InMemoryAnalyticsSink
    flags: FeatureFlagStore
    alerts: AlertEngine
    notifier: InMemoryNotificationService
    probe: InMemoryHealthProbe
    orchestrator: RollbackOrchestrator


def make_harness(settle_interval_seconds: float = 0.0, **config: object) -> Harness:
    storage = InMemoryKeyValueStore()
    analytics = InMemoryAnalyticsSink()
    flags = FeatureFlagStore(
        BucketIdentity(provider=lambda: "install-42"),
        storage=storage,
        analytics=analytics,
    )
    alerts = AlertEngine(analytics=analytics)
    alerts.configure(
        [
            AlertConfiguration(
                metric=MonitoringMetric.ERROR_RATE,
                threshold=0.05,
                severity=AlertSeverity.CRITICAL,
            )
        ]
    )
    notifier = InMemoryNotificationService()
    probe = InMemoryHealthProbe()
    orchestrator = RollbackOrchestrator(
        flags,
        alerts,
        notifier,
        probe,
        analytics=analytics,
        config=RollbackConfig(settle_interval_seconds=settle_interval_seconds, **config),  # type: ignore[arg-type]
    )
    return Harness(storage, analytics, flags, alerts, notifier, probe, orchestrator)


@pytest.fixture
def harness() -> Harness:
    return make_harness()
