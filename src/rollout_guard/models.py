"""rollout_guard データモデル"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class FeatureFlag(StrEnum):
    """このビルドで切り替え可能な機能。値は永続化キー。"""

    BACKEND_V1 = "backendV1"
    NEW_PAYMENT_FLOW = "newPaymentFlow"
    ENHANCED_SECURITY = "enhancedSecurity"


class Percentage(BaseModel):
    """インストールの安定した p% に対して有効化する。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["percentage"] = "percentage"
    percentage: float = Field(ge=0.0, le=100.0, allow_inf_nan=False)


class AllowList(BaseModel):
    """明示的に列挙したインストール識別子に対して有効化する。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["allow_list"] = "allow_list"
    ids: frozenset[str] = frozenset()


class AllUsers(BaseModel):
    """常に有効。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["all"] = "all"


class NoUsers(BaseModel):
    """常に無効。既定値かつロールバック先。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


RolloutStrategy = Annotated[
    Percentage | AllowList | AllUsers | NoUsers,
    Field(discriminator="kind"),
]

strategy_adapter: TypeAdapter[RolloutStrategy] = TypeAdapter(RolloutStrategy)


class MonitoringMetric(StrEnum):
    """監視対象メトリクス。"""

    ERROR_RATE = "errorRate"
    P95_LATENCY = "p95Latency"
    SUCCESS_RATE = "successRate"
    SECURITY_INCIDENTS = "securityIncidents"
    PCI_COMPLIANCE = "pciCompliance"


_SEVERITY_RANK = {"info": 0, "warning": 1, "critical": 2}


class AlertSeverity(StrEnum):
    """アラート重要度。"""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]


class AlertConfiguration(BaseModel):
    """1メトリクスに対する閾値ルール。

    ``min_duration`` は秒単位。0 なら閾値を超えた最初のサンプルで発報する。
    """

    model_config = ConfigDict(frozen=True)

    metric: MonitoringMetric
    threshold: float = Field(allow_inf_nan=False)
    min_duration: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    severity: AlertSeverity = AlertSeverity.WARNING


@dataclass(frozen=True)
class Alert:
    """発報済みで未クリアの閾値超過。"""

    metric: MonitoringMetric
    value: float
    threshold: float
    severity: AlertSeverity
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
