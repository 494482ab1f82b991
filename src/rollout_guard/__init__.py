"""rollout_guard: 段階的な機能ロールアウトと自動ロールバック。"""

from .alerts import AlertEngine, AlertObserver, AlertSubscription
from .analytics import (
    AnalyticsEvent,
    AnalyticsSink,
    InMemoryAnalyticsSink,
    LoggingAnalyticsSink,
    record_event,
)
from .bucketing import HASH_VERSION, bucket_for, stable_hash
from .composition import ControlPlane, build_control_plane
from .controller import RolloutController
from .exceptions import (
    ConfigurationError,
    FeatureFlagError,
    RollbackFailed,
    RolloutGuardError,
    RolloutGuardErrorCodes,
)
from .flags import FeatureFlagStore, decode_assignments, encode_assignments
from .health import HealthProbe, HttpHealthProbe, InMemoryHealthProbe
from .identity import BucketIdentity, InstallationIdProvider
from .loader import deep_merge, load_settings
from .logger import new_logger
from .models import (
    Alert,
    AlertConfiguration,
    AlertSeverity,
    AllowList,
    AllUsers,
    FeatureFlag,
    MonitoringMetric,
    NoUsers,
    Percentage,
    RolloutStrategy,
)
from .notification import (
    InMemoryNotificationService,
    NotificationService,
    UrgentNotification,
    WebhookNotificationService,
)
from .rollback import RollbackConfig, RollbackOrchestrator, RollbackReport
from .settings import RolloutSettings
from .storage import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore
from .trigger import AutoRollbackTrigger

__all__ = [
    "Alert",
    "AlertConfiguration",
    "AlertEngine",
    "AlertObserver",
    "AlertSeverity",
    "AlertSubscription",
    "AllUsers",
    "AllowList",
    "AnalyticsEvent",
    "AnalyticsSink",
    "AutoRollbackTrigger",
    "BucketIdentity",
    "ConfigurationError",
    "ControlPlane",
    "FeatureFlag",
    "FeatureFlagError",
    "FeatureFlagStore",
    "FileKeyValueStore",
    "HASH_VERSION",
    "HealthProbe",
    "HttpHealthProbe",
    "InMemoryAnalyticsSink",
    "InMemoryHealthProbe",
    "InMemoryKeyValueStore",
    "InMemoryNotificationService",
    "InstallationIdProvider",
    "KeyValueStore",
    "LoggingAnalyticsSink",
    "MonitoringMetric",
    "NoUsers",
    "NotificationService",
    "Percentage",
    "RollbackConfig",
    "RollbackFailed",
    "RollbackOrchestrator",
    "RollbackReport",
    "RolloutController",
    "RolloutGuardError",
    "RolloutGuardErrorCodes",
    "RolloutSettings",
    "RolloutStrategy",
    "UrgentNotification",
    "WebhookNotificationService",
    "bucket_for",
    "build_control_plane",
    "decode_assignments",
    "deep_merge",
    "encode_assignments",
    "load_settings",
    "new_logger",
    "record_event",
    "stable_hash",
]
