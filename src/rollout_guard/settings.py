"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .models import (
    AlertConfiguration,
    AlertSeverity,
    FeatureFlag,
    RolloutStrategy,
)
from .rollback import RollbackConfig


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class StorageSection(BaseModel):
    """永続化設定。directory 未指定ならインメモリ。"""

    directory: str | None = None
    flags_key: str = "feature_flags"
    installation_id_key: str = "installation_id"


class HealthSection(BaseModel):
    """ヘルスプローブ設定。"""

    url: str = ""
    healthy_statuses: list[str] = Field(default_factory=lambda: ["operational"])


class NotificationSection(BaseModel):
    """緊急通知設定。"""

    webhook_url: str = ""
    title: str = "Backend Rollback Initiated"
    message: str = "Automatic rollback triggered due to monitoring alerts"


class RollbackSection(BaseModel):
    """ロールバック設定。"""

    at_risk_flag: FeatureFlag = FeatureFlag.BACKEND_V1
    settle_interval_seconds: float = Field(default=5.0, ge=0.0)
    health_timeout_seconds: float = Field(default=5.0, gt=0.0)
    notification_timeout_seconds: float = Field(default=10.0, gt=0.0)
    auto_rollback: bool = False
    auto_rollback_severity: AlertSeverity = AlertSeverity.CRITICAL
    validate_after_rollback: bool = True


class RolloutSettings(BaseModel):
    """rollout_guard 設定全体。"""

    service_name: str = "rollout-guard"
    log: LogSection = Field(default_factory=LogSection)
    storage: StorageSection = Field(default_factory=StorageSection)
    health: HealthSection = Field(default_factory=HealthSection)
    notification: NotificationSection = Field(default_factory=NotificationSection)
    rollback: RollbackSection = Field(default_factory=RollbackSection)
    alerts: list[AlertConfiguration] = Field(default_factory=list)
    default_flags: dict[FeatureFlag, RolloutStrategy] = Field(default_factory=dict)

    def rollback_config(self) -> RollbackConfig:
        return RollbackConfig(
            at_risk_flag=self.rollback.at_risk_flag,
            settle_interval_seconds=self.rollback.settle_interval_seconds,
            health_timeout_seconds=self.rollback.health_timeout_seconds,
            notification_timeout_seconds=self.rollback.notification_timeout_seconds,
            notification_title=self.notification.title,
            notification_message=self.notification.message,
        )
