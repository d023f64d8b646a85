"""Tests for logging setup and run-scoped log context."""

import logging

import structlog

from rewards_metrics.logging import get_logger, run_context, setup_logging


class TestRunContext:
    def test_binds_and_resets(self) -> None:
        with run_context(input_path="rewards.csv", max_lines=5):
            bound = structlog.contextvars.get_contextvars()
            assert bound["input_path"] == "rewards.csv"
            assert bound["max_lines"] == 5

        assert "input_path" not in structlog.contextvars.get_contextvars()


class TestSetupLogging:
    def test_sets_root_level(self) -> None:
        setup_logging("WARNING", log_format="json")
        assert logging.getLogger().level == logging.WARNING
        setup_logging("INFO")
        assert logging.getLogger().level == logging.INFO

    def test_get_logger_returns_usable_logger(self) -> None:
        logger = get_logger("rewards_metrics.test")
        logger.info("test_event", value="1")
