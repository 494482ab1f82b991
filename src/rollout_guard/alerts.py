"""メトリクスサンプルに対する閾値アラート"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from . import metrics
from .analytics import AnalyticsSink, record_event
from .exceptions import ConfigurationError, RolloutGuardErrorCodes
from .models import Alert, AlertConfiguration, MonitoringMetric

logger = structlog.stdlib.get_logger(__name__)

AlertObserver = Callable[[Alert], None]

_BreachKey = tuple[MonitoringMetric, float]


def validate_alert_configurations(
    configs: Iterable[AlertConfiguration | Mapping[str, Any]],
) -> tuple[AlertConfiguration, ...]:
    """全件を検証してから返す。1件でも不正なら ConfigurationError。"""
    validated: list[AlertConfiguration] = []
    for index, config in enumerate(configs):
        if isinstance(config, AlertConfiguration):
            validated.append(config)
            continue
        try:
            validated.append(AlertConfiguration.model_validate(config))
        except ValidationError as e:
            raise ConfigurationError(
                code=RolloutGuardErrorCodes.INVALID_ALERT_CONFIG,
                message=f"Invalid alert configuration at index {index}: {e}",
                cause=e,
            ) from e
    return tuple(validated)


class AlertSubscription:
    """:meth:`AlertEngine.on_alert` が返す購読ハンドル。"""

    def __init__(self, engine: AlertEngine, observer: AlertObserver) -> None:
        self._engine = engine
        self.observer = observer

    def cancel(self) -> None:
        self._engine._unsubscribe(self)


class AlertEngine:
    """メトリクスサンプルを設定済みの閾値と照合する。

    アラートは :meth:`clear` されるまでアクティブのままで、その間は同じ
    (metric, threshold) の組に対して2件目は発報しない。オブザーバは
    アラートがアクティブ集合に入った後、エンジンのロック外で登録順に
    同期実行され、それぞれ個別に例外を捕捉する。
    """

    def __init__(
        self,
        analytics: AnalyticsSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._analytics = analytics
        self._clock = clock
        self._lock = threading.RLock()
        self._configurations: tuple[AlertConfiguration, ...] = ()
        self._active: dict[str, Alert] = {}
        self._subscriptions: list[AlertSubscription] = []
        self._breach_started: dict[_BreachKey, float] = {}

    @property
    def configurations(self) -> tuple[AlertConfiguration, ...]:
        return self._configurations

    @property
    def active_alerts(self) -> tuple[Alert, ...]:
        with self._lock:
            return tuple(self._active.values())

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._lock:
            return self._active.get(alert_id)

    def configure(
        self, configs: Iterable[AlertConfiguration | Mapping[str, Any]]
    ) -> None:
        """設定リスト全体を置き換える。

        Raises:
            ConfigurationError: 不正なエントリがある。以前の設定は維持される。
        """
        validated = validate_alert_configurations(configs)
        with self._lock:
            self._configurations = validated
            self._breach_started.clear()
        logger.info("Configured monitoring", alert_rules=len(validated))

    def on_alert(self, observer: AlertObserver) -> AlertSubscription:
        subscription = AlertSubscription(self, observer)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: AlertSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def track(self, metric: MonitoringMetric, value: float) -> list[Alert]:
        """サンプルを記録し、発報したアラートを返す。"""
        try:
            metric = MonitoringMetric(metric)
            sample = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric metric sample", metric=str(metric), value=repr(value))
            return []

        raised: list[Alert] = []
        with self._lock:
            now = self._clock()
            for config in self._configurations:
                if config.metric != metric:
                    continue
                key = (config.metric, config.threshold)
                if math.isnan(sample) or sample < config.threshold:
                    self._breach_started.pop(key, None)
                    continue
                if self._has_active(key) or not self._sustained(config, key, now):
                    continue
                alert = Alert(
                    metric=metric,
                    value=sample,
                    threshold=config.threshold,
                    severity=config.severity,
                )
                self._active[alert.id] = alert
                self._breach_started.pop(key, None)
                raised.append(alert)
            subscriptions = list(self._subscriptions)

        for alert in raised:
            self._announce(alert, subscriptions)

        logger.debug("Metric recorded", metric=metric.value, value=sample)
        record_event(
            self._analytics,
            "metric_recorded",
            {"metric": metric.value, "value": sample},
        )
        return raised

    def clear(self, alert_id: str) -> bool:
        """アクティブなアラートを削除する。未知の ID は何もしない。"""
        with self._lock:
            alert = self._active.pop(alert_id, None)
        if alert is None:
            return False
        logger.info("Cleared alert", alert_id=alert_id, metric=alert.metric.value)
        metrics.alerts_cleared_total.add(1, {"metric": alert.metric.value})
        record_event(
            self._analytics,
            "alert_cleared",
            {"alert_id": alert_id, "metric": alert.metric.value},
        )
        return True

    def _has_active(self, key: _BreachKey) -> bool:
        return any((a.metric, a.threshold) == key for a in self._active.values())

    def _sustained(self, config: AlertConfiguration, key: _BreachKey, now: float) -> bool:
        if config.min_duration <= 0:
            return True
        started = self._breach_started.setdefault(key, now)
        return now - started >= config.min_duration

    def _announce(self, alert: Alert, subscriptions: list[AlertSubscription]) -> None:
        logger.error(
            "Alert triggered",
            alert_id=alert.id,
            metric=alert.metric.value,
            value=alert.value,
            threshold=alert.threshold,
            severity=alert.severity.value,
        )
        metrics.alerts_raised_total.add(
            1, {"metric": alert.metric.value, "severity": alert.severity.value}
        )
        for subscription in subscriptions:
            try:
                subscription.observer(alert)
            except Exception:
                logger.exception("Alert observer failed", alert_id=alert.id)
        record_event(
            self._analytics,
            "alert_triggered",
            {
                "metric": alert.metric.value,
                "value": alert.value,
                "threshold": alert.threshold,
                "severity": alert.severity.value,
            },
        )
