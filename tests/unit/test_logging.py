"""
Tests for structured logging and request tracing.
"""

import json
import logging

import structlog

from core.logging import bind_context, clear_context, configure_logging, get_logger


class TestConfigureLogging:

    def test_log_level_applied(self):
        configure_logging(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

        # Reconfiguring replaces the earlier setup
        configure_logging(log_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_client_loggers_raised_to_warning(self):
        configure_logging(log_level="DEBUG")

        for name in ("httpx", "openai", "postgrest"):
            assert logging.getLogger(name).level == logging.WARNING


class TestJSONOutput:

    def test_bound_context_in_json_line(self, capsys):
        configure_logging(json_logs=True, log_level="INFO")
        logger = get_logger("feed.json_test")

        bind_context(request_id="req-42", user_id="u1")
        try:
            logger.info("Feed served", items=12)
        finally:
            clear_context()

        lines = [l for l in capsys.readouterr().out.splitlines() if "Feed served" in l]
        data = json.loads(lines[-1])
        assert data["request_id"] == "req-42"
        assert data["user_id"] == "u1"
        assert data["items"] == 12
        assert data["level"] == "info"

    def test_clear_context(self):
        bind_context(user_id="u1")
        clear_context()
        assert "user_id" not in structlog.contextvars.get_contextvars()


class TestRequestTracing:

    def test_incoming_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-1"})
        assert response.headers["X-Request-ID"] == "trace-1"

    def test_request_id_generated(self, client):
        response = client.get("/live")
        assert len(response.headers["X-Request-ID"]) == 8

