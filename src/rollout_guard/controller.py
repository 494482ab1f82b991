"""アプリケーション・機能コード向けのフラグストアのファサード"""

from __future__ import annotations

from collections.abc import Iterable

from .flags import FeatureFlagStore
from .models import AllowList, AllUsers, FeatureFlag, Percentage, RolloutStrategy


class RolloutController:
    """機能コードが触れるべき唯一のロールアウト窓口。

    Example:
        controller.rollout_percentage(FeatureFlag.BACKEND_V1, 10)
        if controller.is_enabled(FeatureFlag.BACKEND_V1):
            ...
    """

    def __init__(self, store: FeatureFlagStore) -> None:
        self._store = store

    def is_enabled(self, flag: FeatureFlag) -> bool:
        return self._store.is_enabled(flag)

    def activate(self, flag: FeatureFlag, strategy: RolloutStrategy) -> bool:
        return self._store.activate(flag, strategy)

    def deactivate(self, flag: FeatureFlag) -> bool:
        return self._store.deactivate(flag)

    def rollout_percentage(self, flag: FeatureFlag, percentage: float) -> bool:
        """``flag`` をインストールの ``percentage`` % に公開する。

        Raises:
            pydantic.ValidationError: percentage が [0, 100] の範囲外
        """
        return self._store.activate(flag, Percentage(percentage=percentage))

    def enable_for(self, flag: FeatureFlag, installation_ids: Iterable[str]) -> bool:
        return self._store.activate(flag, AllowList(ids=frozenset(installation_ids)))

    def enable_all(self, flag: FeatureFlag) -> bool:
        return self._store.activate(flag, AllUsers())

    def strategy(self, flag: FeatureFlag) -> RolloutStrategy:
        return self._store.strategy(flag)

    def assignments(self) -> dict[FeatureFlag, RolloutStrategy]:
        return self._store.assignments()
