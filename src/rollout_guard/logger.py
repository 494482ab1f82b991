"""structlog ベースのロガー設定"""

from __future__ import annotations

import logging
import sys

import structlog

PACKAGE_LOGGER = "rollout_guard"


def _processors(format: str) -> list[structlog.types.Processor]:
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if format == "json":
        return [
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    return [*shared, structlog.dev.ConsoleRenderer()]


def new_logger(
    level: str = "INFO",
    format: str = "json",
    service_name: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """rollout_guard 用に structlog を設定し、パッケージロガーを返す。

    パッケージ配下の stdlib ロガーのレベルも ``level`` に合わせる。
    ``service_name`` を渡すと contextvars に ``service`` として束縛し、
    以降の全ログ行に付与する。

    Args:
        level: ログレベル ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        format: 出力形式 ("json" or "text")
        service_name: ログに付与するサービス名

    Returns:
        設定済みの structlog.stdlib.BoundLogger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)

    structlog.configure(
        processors=_processors(format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)

    return structlog.stdlib.get_logger(PACKAGE_LOGGER)
