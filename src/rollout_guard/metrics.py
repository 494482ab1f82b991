"""ロールアウト制御ループの OpenTelemetry カウンタ"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("rollout_guard", version="0.1.0")

flag_changes_total = _meter.create_counter(
    name="flag_changes_total",
    description="Total number of feature flag strategy changes",
    unit="1",
)

alerts_raised_total = _meter.create_counter(
    name="alerts_raised_total",
    description="Total number of alerts raised",
    unit="1",
)

alerts_cleared_total = _meter.create_counter(
    name="alerts_cleared_total",
    description="Total number of alerts cleared",
    unit="1",
)

rollbacks_total = _meter.create_counter(
    name="rollbacks_total",
    description="Total number of executed rollback plans",
    unit="1",
)

rollback_failures_total = _meter.create_counter(
    name="rollback_failures_total",
    description="Total number of failed rollback executions or validations",
    unit="1",
)
