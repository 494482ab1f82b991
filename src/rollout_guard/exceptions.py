"""rollout_guard の例外型定義"""

from __future__ import annotations


class RolloutGuardError(Exception):
    """rollout_guard ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigurationError(RolloutGuardError):
    """アラート設定または設定ファイルが不正。"""


class FeatureFlagError(RolloutGuardError):
    """フラグがロールバックに必要な状態にない。"""


class RollbackFailed(RolloutGuardError):
    """ロールバック手順またはロールバック後の検証が失敗した。"""

    def __init__(
        self,
        reason: str,
        code: str = "ROLLBACK_FAILED",
        cause: Exception | None = None,
    ) -> None:
        super().__init__(code, reason, cause)
        self.reason = reason


class RolloutGuardErrorCodes:
    """エラーコード定数。"""

    INVALID_ALERT_CONFIG: str = "INVALID_ALERT_CONFIG"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
    MISSING_HEALTH_PROBE: str = "MISSING_HEALTH_PROBE"
    FLAG_STILL_ENABLED: str = "FLAG_STILL_ENABLED"
    ROLLBACK_FAILED: str = "ROLLBACK_FAILED"
    HEALTH_CHECK_FAILED: str = "HEALTH_CHECK_FAILED"
    ALERTS_STILL_ACTIVE: str = "ALERTS_STILL_ACTIVE"
