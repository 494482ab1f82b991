"""RollbackOrchestrator のユニットテスト"""

import asyncio

import pytest
from conftest import Harness, make_harness

from rollout_guard import (
    AllUsers,
    FeatureFlag,
    FeatureFlagError,
    HealthProbe,
    KeyValueStore,
    MonitoringMetric,
    NotificationService,
    RollbackFailed,
    RolloutGuardErrorCodes,
)


class _SlowProbe(HealthProbe):
    async def check_health(self) -> bool:
        await asyncio.sleep(10)
        return True


class _RaisingProbe(HealthProbe):
    async def check_health(self) -> bool:
        raise ConnectionError("backend unreachable")


class _RaisingNotifier(NotificationService):
    async def send_urgent(self, title: str, message: str) -> bool:
        raise ConnectionError("push gateway down")


class _BrokenStore(KeyValueStore):
    def load(self, key: str) -> bytes | None:
        return None

    def save(self, key: str, data: bytes) -> None:
        raise OSError("disk full")


async def test_rollback_disables_flag_and_clears_alerts(harness: Harness) -> None:
    harness.flags.activate(FeatureFlag.BACKEND_V1, AllUsers())
    (alert,) = harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.06)
    assert harness.flags.is_enabled(FeatureFlag.BACKEND_V1) is True

    report = await harness.orchestrator.execute_rollback_plan()

    assert harness.flags.is_enabled(FeatureFlag.BACKEND_V1) is False
    assert len(harness.alerts.active_alerts) == 0
    assert report.cleared_alert_ids == [alert.id]
    assert report.flag == FeatureFlag.BACKEND_V1
    assert report.notified is True
    assert report.flag_persisted is True


async def test_rollback_notifies_and_records(harness: Harness) -> None:
    await harness.orchestrator.execute_rollback_plan(reason="manual operator rollback")
    (sent,) = harness.notifier.sent
    assert sent.title == "Backend Rollback Initiated"
    (event,) = harness.analytics.named("rollback_executed")
    assert event.properties["reason"] == "manual operator rollback"
    assert event.properties["flag"] == "backendV1"


async def test_rollback_is_idempotent(harness: Harness) -> None:
    harness.flags.activate(FeatureFlag.BACKEND_V1, AllUsers())
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)
    await harness.orchestrator.execute_rollback_plan()
    second = await harness.orchestrator.execute_rollback_plan()
    assert second.cleared_alert_ids == []
    assert harness.flags.is_enabled(FeatureFlag.BACKEND_V1) is False


async def test_notification_failure_is_best_effort() -> None:
    h = make_harness()
    h.notifier.succeed = False
    report = await h.orchestrator.execute_rollback_plan()
    assert report.notified is False
    assert h.flags.is_enabled(FeatureFlag.BACKEND_V1) is False


async def test_raising_notifier_does_not_abort() -> None:
    h = make_harness()
    h.orchestrator._notifier = _RaisingNotifier()
    report = await h.orchestrator.execute_rollback_plan()
    assert report.notified is False
    assert h.analytics.named("rollback_executed")


async def test_persistence_failure_is_reported_not_raised() -> None:
    h = make_harness()
    h.flags._storage = _BrokenStore()
    report = await h.orchestrator.execute_rollback_plan()
    assert report.flag_persisted is False
    assert h.flags.is_enabled(FeatureFlag.BACKEND_V1) is False


async def test_unexpected_failure_aborts_with_rollback_failed(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    def boom(flag: FeatureFlag) -> bool:
        raise RuntimeError("lock poisoned")

    monkeypatch.setattr(harness.flags, "deactivate", boom)
    with pytest.raises(RollbackFailed) as exc_info:
        await harness.orchestrator.execute_rollback_plan()
    assert exc_info.value.code == RolloutGuardErrorCodes.ROLLBACK_FAILED
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert harness.notifier.sent == []


async def test_clear_failure_aborts_remaining_steps(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)

    def boom(alert_id: str) -> bool:
        raise RuntimeError("engine unavailable")

    monkeypatch.setattr(harness.alerts, "clear", boom)
    with pytest.raises(RollbackFailed):
        await harness.orchestrator.execute_rollback_plan()
    assert harness.notifier.sent == []
    assert harness.analytics.named("rollback_executed") == []


async def test_validate_succeeds_after_rollback(harness: Harness) -> None:
    harness.flags.activate(FeatureFlag.BACKEND_V1, AllUsers())
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)
    await harness.orchestrator.execute_rollback_plan()
    assert await harness.orchestrator.validate_post_rollback() is True
    assert harness.probe.calls == 1


async def test_validate_fails_when_flag_reenabled(harness: Harness) -> None:
    await harness.orchestrator.execute_rollback_plan()
    harness.flags.activate(FeatureFlag.BACKEND_V1, AllUsers())
    with pytest.raises(FeatureFlagError) as exc_info:
        await harness.orchestrator.validate_post_rollback()
    assert exc_info.value.code == RolloutGuardErrorCodes.FLAG_STILL_ENABLED
    assert harness.probe.calls == 0


async def test_validate_fails_when_unhealthy(harness: Harness) -> None:
    harness.probe.healthy = False
    with pytest.raises(RollbackFailed) as exc_info:
        await harness.orchestrator.validate_post_rollback()
    assert exc_info.value.reason == "health check failed"
    assert exc_info.value.code == RolloutGuardErrorCodes.HEALTH_CHECK_FAILED


async def test_validate_unhealthy_regardless_of_state(harness: Harness) -> None:
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)
    harness.probe.healthy = False
    with pytest.raises(RollbackFailed, match="health check failed"):
        await harness.orchestrator.validate_post_rollback()


async def test_health_probe_timeout_is_unhealthy() -> None:
    h = make_harness(health_timeout_seconds=0.05)
    h.orchestrator._health_probe = _SlowProbe()
    with pytest.raises(RollbackFailed, match="health check failed"):
        await h.orchestrator.validate_post_rollback()


async def test_health_probe_exception_is_unhealthy() -> None:
    h = make_harness()
    h.orchestrator._health_probe = _RaisingProbe()
    with pytest.raises(RollbackFailed, match="health check failed"):
        await h.orchestrator.validate_post_rollback()


async def test_validate_fails_when_alerts_remain(harness: Harness) -> None:
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)
    with pytest.raises(RollbackFailed) as exc_info:
        await harness.orchestrator.validate_post_rollback()
    assert exc_info.value.reason == "alerts still active"
    assert exc_info.value.code == RolloutGuardErrorCodes.ALERTS_STILL_ACTIVE


async def test_alert_raised_during_settle_fails_validation() -> None:
    h = make_harness(settle_interval_seconds=0.05)
    await h.orchestrator.execute_rollback_plan()

    async def regress() -> None:
        await asyncio.sleep(0.01)
        h.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)

    task = asyncio.create_task(regress())
    with pytest.raises(RollbackFailed, match="alerts still active"):
        await h.orchestrator.validate_post_rollback()
    await task


async def test_settle_wait_can_be_cancelled() -> None:
    h = make_harness(settle_interval_seconds=30.0)
    task = asyncio.create_task(h.orchestrator.validate_post_rollback())
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_concurrent_rollbacks_are_serialized(harness: Harness) -> None:
    harness.alerts.track(MonitoringMetric.ERROR_RATE, 0.5)
    first, second = await asyncio.gather(
        harness.orchestrator.execute_rollback_plan(),
        harness.orchestrator.execute_rollback_plan(),
    )
    assert len(first.cleared_alert_ids) + len(second.cleared_alert_ids) == 1
    assert len(harness.notifier.sent) == 2
