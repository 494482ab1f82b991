"""フラグ → 戦略マップ（書き込み時永続化付き）"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, assert_never

import structlog
from pydantic import ValidationError

from . import metrics
from .analytics import AnalyticsSink, record_event
from .bucketing import bucket_for
from .identity import BucketIdentity
from .models import (
    AllowList,
    AllUsers,
    FeatureFlag,
    NoUsers,
    Percentage,
    RolloutStrategy,
    strategy_adapter,
)
from .storage import KeyValueStore

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_STORAGE_KEY = "feature_flags"


def encode_assignments(assignments: Mapping[FeatureFlag, RolloutStrategy]) -> bytes:
    """フラグ割り当てを JSON バイト列にシリアライズする（既知のフラグのみ）。"""
    data: dict[str, Any] = {}
    for flag, strategy in assignments.items():
        if not isinstance(flag, FeatureFlag):
            continue
        entry = strategy_adapter.dump_python(strategy, mode="json")
        if isinstance(strategy, AllowList):
            entry["ids"] = sorted(strategy.ids)
        data[flag.value] = entry
    return json.dumps(data, sort_keys=True).encode("utf-8")


def decode_assignments(raw: bytes) -> dict[FeatureFlag, RolloutStrategy]:
    """永続化済みの割り当てを復元する。未知のフラグと不正なエントリは破棄する。"""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Discarding unreadable persisted feature flags", error=str(e))
        return {}
    if not isinstance(data, dict):
        logger.warning("Discarding persisted feature flags with unexpected shape")
        return {}

    result: dict[FeatureFlag, RolloutStrategy] = {}
    for key, value in data.items():
        try:
            flag = FeatureFlag(key)
        except ValueError:
            logger.info("Discarding unknown persisted feature flag", flag=key)
            continue
        try:
            result[flag] = strategy_adapter.validate_python(value)
        except ValidationError as e:
            logger.warning(
                "Discarding malformed persisted strategy", flag=key, error=str(e)
            )
    return result


def evaluate(flag: FeatureFlag, strategy: RolloutStrategy, identity: str) -> bool:
    """``identity`` に対する ``strategy`` の純粋な評価。"""
    match strategy:
        case AllUsers():
            return True
        case NoUsers():
            return False
        case Percentage(percentage=percentage):
            return bucket_for(flag.value, identity) < percentage
        case AllowList(ids=ids):
            return identity in ids
        case _:
            assert_never(strategy)


class FeatureFlagStore:
    """フラグごとに戦略を1つ保持し、このインストールに対して評価する。

    変更は単一のロックで直列化され、ロック解放前に ``storage`` へ書き込まれる。
    読み取りは現在の不変スナップショットを使い、書き込みを待たない。
    """

    def __init__(
        self,
        identity: BucketIdentity,
        storage: KeyValueStore | None = None,
        analytics: AnalyticsSink | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._identity = identity
        self._storage = storage
        self._analytics = analytics
        self._storage_key = storage_key
        self._lock = threading.Lock()
        self._assignments: Mapping[FeatureFlag, RolloutStrategy] = MappingProxyType({})

    def load(self) -> int:
        """永続化済みの割り当てでメモリ上の状態を置き換える。

        読み込んだ割り当て数を返す。読み込みに失敗した場合は現在の状態を維持する。
        """
        if self._storage is None:
            return 0
        with self._lock:
            try:
                raw = self._storage.load(self._storage_key)
            except Exception as e:
                logger.error(
                    "Failed to load persisted feature flags",
                    key=self._storage_key,
                    error=str(e),
                )
                return 0
            if raw is None:
                return 0
            loaded = decode_assignments(raw)
            self._assignments = MappingProxyType(loaded)
        logger.info("Loaded persisted feature flags", count=len(loaded))
        return len(loaded)

    def activate(self, flag: FeatureFlag, strategy: RolloutStrategy) -> bool:
        """``flag`` の戦略を設定して永続化する。

        ストレージへの書き込みが成功したかを返す。メモリ上の割り当ては
        成否にかかわらず反映される。
        """
        with self._lock:
            updated = dict(self._assignments)
            updated[flag] = strategy
            self._assignments = MappingProxyType(updated)
            persisted = self._persist(updated)

        enabled = not isinstance(strategy, NoUsers)
        if enabled:
            logger.info("Activated feature flag", flag=flag.value, strategy=strategy.kind)
        else:
            logger.info("Deactivated feature flag", flag=flag.value)
        metrics.flag_changes_total.add(1, {"flag": flag.value, "strategy": strategy.kind})
        record_event(
            self._analytics,
            "feature_flag_changed",
            {"flag": flag.value, "enabled": enabled, "strategy": strategy.kind},
        )
        return persisted

    def deactivate(self, flag: FeatureFlag) -> bool:
        return self.activate(flag, NoUsers())

    def strategy(self, flag: FeatureFlag) -> RolloutStrategy:
        return self._assignments.get(flag, NoUsers())

    def assignments(self) -> dict[FeatureFlag, RolloutStrategy]:
        return dict(self._assignments)

    def is_enabled(self, flag: FeatureFlag, identity: str | None = None) -> bool:
        """このインストール、または ``identity`` 指定時はその識別子で ``flag`` を評価する。"""
        strategy = self._assignments.get(flag)
        if strategy is None:
            return False
        if identity is None:
            identity = self._identity.identity()
        return evaluate(flag, strategy, identity)

    def _persist(self, assignments: Mapping[FeatureFlag, RolloutStrategy]) -> bool:
        if self._storage is None:
            return True
        try:
            self._storage.save(self._storage_key, encode_assignments(assignments))
        except Exception as e:
            logger.error(
                "Failed to persist feature flags",
                key=self._storage_key,
                error=str(e),
            )
            return False
        return True
