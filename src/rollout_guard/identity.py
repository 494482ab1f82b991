"""スティッキーなバケット割り当てに使うインストール識別子"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable

import structlog

from .storage import KeyValueStore

logger = structlog.stdlib.get_logger(__name__)

InstallationIdProvider = Callable[[], str | None]


class BucketIdentity:
    """このインストールの安定した不透明な識別子を解決する。

    解決順: プラットフォームのプロバイダ、``storage`` に永続化された
    フォールバック ID、新規生成した ID（永続化はベストエフォート）。
    結果はキャッシュされ、:meth:`identity` は例外を送出しない。
    """

    def __init__(
        self,
        provider: InstallationIdProvider | None = None,
        storage: KeyValueStore | None = None,
        storage_key: str = "installation_id",
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._provider = provider
        self._storage = storage
        self._storage_key = storage_key
        self._id_factory = id_factory
        self._identity: str | None = None
        self._lock = threading.Lock()

    def identity(self) -> str:
        cached = self._identity
        if cached is not None:
            return cached
        with self._lock:
            if self._identity is None:
                self._identity = self._resolve()
            return self._identity

    def _resolve(self) -> str:
        platform_id = self._from_provider()
        if platform_id:
            return platform_id

        persisted = self._load_fallback()
        if persisted:
            return persisted

        generated = self._id_factory()
        self._save_fallback(generated)
        logger.info("Generated fallback installation id")
        return generated

    def _from_provider(self) -> str | None:
        if self._provider is None:
            return None
        try:
            value = self._provider()
        except Exception as e:
            logger.warning("Installation id provider failed", error=str(e))
            return None
        if value is None or not value.strip():
            return None
        return value.strip()

    def _load_fallback(self) -> str | None:
        if self._storage is None:
            return None
        try:
            raw = self._storage.load(self._storage_key)
        except Exception as e:
            logger.warning("Failed to load fallback installation id", error=str(e))
            return None
        if not raw:
            return None
        try:
            value = raw.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.warning("Discarding unreadable fallback installation id")
            return None
        return value or None

    def _save_fallback(self, value: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.save(self._storage_key, value.encode("utf-8"))
        except Exception as e:
            logger.warning("Failed to persist fallback installation id", error=str(e))
