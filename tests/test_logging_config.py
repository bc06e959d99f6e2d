"""Tests for structured logging and request tracing."""

import asyncio
import json
import logging
import sys
import time

import pytest

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import (
    RequestContext,
    generate_request_id,
    get_context_dict,
    get_request_id,
)
from src.logging_config.performance import log_performance
from src.logging_config.setup import (
    ConsoleFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)


def _record(msg="test", level=logging.INFO, name="test", lineno=1, exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="test.py",
        lineno=lineno, msg=msg, args=(), exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLoggingConfig:
    """Tests for logging configuration dataclasses."""

    def test_default_config_values(self):
        config = LoggingConfig()
        assert config.level == LogLevel.INFO
        assert config.format == LogFormat.CONSOLE
        assert config.include_caller is True
        assert config.slow_threshold_ms == 1000.0
        assert config.service_name == "pricewatch"

    def test_custom_config(self):
        config = LoggingConfig(
            level=LogLevel.DEBUG,
            format=LogFormat.JSON,
            slow_threshold_ms=500.0,
            service_name="test",
        )
        assert config.level == LogLevel.DEBUG
        assert config.format == LogFormat.JSON
        assert config.slow_threshold_ms == 500.0

    def test_log_level_enum_values(self):
        assert LogLevel.DEBUG.value == "DEBUG"
        assert LogLevel.WARNING.value == "WARNING"
        assert LogLevel.CRITICAL.value == "CRITICAL"

    def test_log_format_enum_values(self):
        assert LogFormat.JSON.value == "json"
        assert LogFormat.CONSOLE.value == "console"


class TestRequestContext:
    """Tests for request context management."""

    def test_generate_request_id_unique(self):
        ids = {generate_request_id() for _ in range(100)}
        assert len(ids) == 100

    def test_request_id_is_uuid_format(self):
        assert len(generate_request_id().split("-")) == 5

    def test_context_sets_request_id(self):
        with RequestContext(request_id="test-123"):
            assert get_request_id() == "test-123"
        assert get_request_id() == ""

    def test_auto_generates_request_id(self):
        with RequestContext() as ctx:
            assert ctx.request_id != ""
            assert get_request_id() == ctx.request_id

    def test_context_dict_empty_outside(self):
        assert get_context_dict() == {}

    def test_bind_extra_context(self):
        with RequestContext(request_id="r1") as ctx:
            ctx.bind(token="swift-golden-dragon")
            d = get_context_dict()
            assert d["request_id"] == "r1"
            assert d["token"] == "swift-golden-dragon"
        assert get_context_dict() == {}

    def test_elapsed_ms(self):
        with RequestContext() as ctx:
            time.sleep(0.01)
            assert ctx.elapsed_ms >= 10

    def test_nested_contexts_restore_outer(self):
        with RequestContext(request_id="outer"):
            with RequestContext(request_id="inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"

    @pytest.mark.asyncio
    async def test_tasks_keep_separate_contexts(self):
        async def worker(rid):
            with RequestContext(request_id=rid):
                await asyncio.sleep(0.01)
                return get_request_id()

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]


class TestStructuredFormatter:
    """Tests for JSON structured log formatting."""

    def test_formats_as_json(self):
        parsed = json.loads(StructuredFormatter().format(_record("hello world")))
        assert parsed["message"] == "hello world"
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test"
        assert parsed["service"] == "pricewatch"
        assert "timestamp" in parsed

    def test_includes_caller_info(self):
        parsed = json.loads(StructuredFormatter(include_caller=True).format(_record(lineno=42)))
        assert parsed["line"] == 42
        assert "function" in parsed

    def test_excludes_caller_when_disabled(self):
        parsed = json.loads(StructuredFormatter(include_caller=False).format(_record(lineno=42)))
        assert "line" not in parsed
        assert "function" not in parsed

    def test_includes_request_context(self):
        with RequestContext(request_id="ctx-test"):
            parsed = json.loads(StructuredFormatter().format(_record()))
        assert parsed["request_id"] == "ctx-test"

    def test_formats_exception(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _record("failed", level=logging.ERROR, exc_info=sys.exc_info())
        parsed = json.loads(StructuredFormatter().format(record))
        assert parsed["exception"]["type"] == "ValueError"
        assert "test error" in parsed["exception"]["message"]

    def test_includes_duration(self):
        record = _record()
        record.duration_ms = 42.5
        parsed = json.loads(StructuredFormatter().format(record))
        assert parsed["duration_ms"] == 42.5


class TestConsoleFormatter:
    """Tests for colored console log formatting."""

    def test_formats_readable_output(self):
        output = ConsoleFormatter().format(_record("hello", name="src.watchlist.store"))
        assert "src.watchlist.store" in output
        assert "hello" in output

    def test_includes_context_info(self):
        with RequestContext(request_id="abc"):
            output = ConsoleFormatter().format(_record())
        assert "request_id=abc" in output

    def test_has_color_codes(self):
        output = ConsoleFormatter().format(_record("error", level=logging.ERROR))
        assert "\033[31m" in output
        assert "ERROR" in output


class TestConfigureLogging:
    """Tests for the configure_logging setup function."""

    def test_json_format(self, restore_root_logger):
        configure_logging(LoggingConfig(format=LogFormat.JSON))
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_console_format(self, restore_root_logger):
        configure_logging(LoggingConfig(format=LogFormat.CONSOLE))
        assert isinstance(restore_root_logger.handlers[0].formatter, ConsoleFormatter)

    def test_sets_log_level(self, restore_root_logger):
        configure_logging(LoggingConfig(level=LogLevel.DEBUG))
        assert restore_root_logger.level == logging.DEBUG

    def test_quiets_http_loggers(self, restore_root_logger):
        configure_logging()
        assert logging.getLogger("httpx").level >= logging.WARNING

    def test_env_var_override_level(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("PRICEWATCH_LOG_LEVEL", "debug")
        configure_logging(LoggingConfig(level=LogLevel.ERROR))
        assert restore_root_logger.level == logging.DEBUG

    def test_env_var_override_format(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("PRICEWATCH_LOG_FORMAT", "JSON")
        configure_logging(LoggingConfig(format=LogFormat.CONSOLE))
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_get_logger_returns_logger(self):
        logger = get_logger("src.watchlist")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "src.watchlist"


class TestPerformanceLogging:
    """Tests for the performance timing decorator."""

    def test_log_performance_sync(self):
        @log_performance(threshold_ms=10000)
        def fast_func():
            return 42

        assert fast_func() == 42

    @pytest.mark.asyncio
    async def test_log_performance_async(self):
        @log_performance(threshold_ms=10000)
        async def async_func():
            return "ok"

        assert await async_func() == "ok"

    def test_log_performance_preserves_name(self):
        @log_performance()
        def my_function():
            """My docstring."""

        assert my_function.__name__ == "my_function"
        assert my_function.__doc__ == "My docstring."

    def test_log_performance_with_exception(self, caplog):
        @log_performance(threshold_ms=10000)
        def failing_func():
            raise ValueError("test error")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ValueError, match="test error"):
                failing_func()
        assert "failing_func failed" in caplog.text

    @pytest.mark.asyncio
    async def test_log_performance_async_exception(self):
        @log_performance(threshold_ms=10000)
        async def async_failing():
            raise RuntimeError("async fail")

        with pytest.raises(RuntimeError, match="async fail"):
            await async_failing()

    def test_slow_call_warns(self, caplog):
        @log_performance(threshold_ms=0)
        def slow():
            return 1

        with caplog.at_level(logging.WARNING):
            slow()
        assert "Slow operation" in caplog.text
