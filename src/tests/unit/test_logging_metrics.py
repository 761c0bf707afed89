"""Unit tests for logging and metrics utilities."""

import logging

from prometheus_client import REGISTRY

from taskboard_service.config import Settings
from taskboard_service.utils.logging import (
    add_request_id,
    get_logger,
    request_id_var,
    sanitize_for_logging,
    setup_logging,
)
from taskboard_service.utils.metrics import get_metrics


class TestSanitizeForLogging:
    """Tests for redaction of sensitive values."""

    def test_redacts_passwords_and_tokens(self) -> None:
        event = sanitize_for_logging(
            logging.getLogger(),
            "info",
            {"event": "login", "password": "pw", "token": "abcdefghijklmnop", "user_id": "u1"},
        )

        assert event["password"] == "***REDACTED***"
        assert event["token"] == "abcd...mnop"
        assert event["user_id"] == "u1"

    def test_redacts_nested_values(self) -> None:
        event = sanitize_for_logging(logging.getLogger(), "info", {"body": {"adminInviteToken": "x"}})

        assert event["body"]["adminInviteToken"] == "***REDACTED***"


class TestRequestId:
    """Tests for request ID propagation."""

    def test_added_when_bound(self) -> None:
        token = request_id_var.set("req-1")
        try:
            event = add_request_id(logging.getLogger(), "info", {"event": "x"})
        finally:
            request_id_var.reset(token)

        assert event["request_id"] == "req-1"

    def test_absent_when_unbound(self) -> None:
        assert "request_id" not in add_request_id(logging.getLogger(), "info", {"event": "x"})


class TestSetupLogging:
    """Tests for logging configuration."""

    def test_configures_root_logger(self, tmp_path) -> None:
        log_file = tmp_path / "taskboard.log"
        settings = Settings(_env_file=None, log_level="WARNING", log_format="console", log_file=str(log_file))

        setup_logging(settings)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 2
        assert get_logger("taskboard_service.test") is get_logger("taskboard_service.test")

        for handler in root.handlers:
            handler.close()
        root.handlers.clear()


class TestMetrics:
    """Tests for Prometheus metrics."""

    def test_metrics_instance_is_cached(self) -> None:
        assert get_metrics() is get_metrics()

    def test_record_task_operation(self) -> None:
        metrics = get_metrics()
        labels = {"operation": "unit-test", "status": "success"}
        before = REGISTRY.get_sample_value("task_operations_total", labels) or 0.0

        metrics.record_task_operation("unit-test", "success", 0.01)

        assert REGISTRY.get_sample_value("task_operations_total", labels) == before + 1

    def test_record_push(self) -> None:
        metrics = get_metrics()
        before = REGISTRY.get_sample_value("realtime_push_total", {"outcome": "offline"}) or 0.0

        metrics.record_push("offline")

        assert REGISTRY.get_sample_value("realtime_push_total", {"outcome": "offline"}) == before + 1
