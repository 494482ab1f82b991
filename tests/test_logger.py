"""ロガー設定のユニットテスト"""

import logging

import structlog

from rollout_guard import new_logger


def teardown_function() -> None:
    structlog.contextvars.clear_contextvars()
    logging.getLogger("rollout_guard").setLevel(logging.NOTSET)


def test_new_logger_json_format() -> None:
    logger = new_logger(level="INFO", format="json")
    assert logger is not None
    assert logging.getLogger("rollout_guard").level == logging.INFO


def test_new_logger_text_format() -> None:
    logger = new_logger(level="DEBUG", format="text")
    assert logger is not None
    assert logging.getLogger("rollout_guard").level == logging.DEBUG


def test_unknown_level_falls_back_to_info() -> None:
    new_logger(level="LOUD")
    assert logging.getLogger("rollout_guard").level == logging.INFO


def test_service_name_is_bound() -> None:
    new_logger(service_name="checkout")
    assert structlog.contextvars.get_contextvars()["service"] == "checkout"


def test_new_logger_binds_context() -> None:
    logger = new_logger()
    bound = logger.bind(flag="backendV1")
    bound.info("Activated feature flag")
