"""Tests for logging setup, formatters, context and LoggedClass."""

import json
import logging

import pytest

from authed_client.common.exceptions import ServerError
from authed_client.common.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from authed_client.common.logging.decorators import LoggedClass, logged_operation
from authed_client.common.logging.formatters import ConsoleFormatter, JSONFormatter
from authed_client.common.logging.setup import get_log_file_path, setup_logging
from authed_client.common.logging.utilities import log_exception


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("authed_client.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_set_and_get(self):
        set_log_context(session_id="s1", correlation_id="c1")
        assert get_log_context() == {"session_id": "s1", "correlation_id": "c1"}

    def test_none_arguments_leave_values(self):
        set_log_context(session_id="s1")
        set_log_context(correlation_id="c1")
        assert get_log_context()["session_id"] == "s1"

    def test_clear(self):
        set_log_context(session_id="s1", correlation_id="c1")
        clear_log_context()
        assert get_log_context() == {"session_id": None, "correlation_id": None}

    def test_scoped_context_restores_previous(self):
        set_log_context(correlation_id="outer")
        with log_context(correlation_id="inner"):
            assert get_log_context()["correlation_id"] == "inner"
        assert get_log_context()["correlation_id"] == "outer"

    def test_scoped_context_rejects_unknown_field(self):
        with pytest.raises(KeyError):
            with log_context(worker="x"):
                pass


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "authed_client.test"
        assert entry["msg"] == "hello"
        assert entry["ts"].endswith("Z")

    def test_extra_fields_and_url_sanitized(self):
        record = make_record(
            http_status=401,
            replay_depth=1,
            url="https://api.example.com/files?token=abc",
        )
        entry = json.loads(JSONFormatter().format(record))

        assert entry["http_status"] == 401
        assert entry["replay_depth"] == 1
        assert "abc" not in entry["url"]

    def test_context_fields_injected(self):
        set_log_context(session_id="sess-1", correlation_id="corr-1")
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["session_id"] == "sess-1"
        assert entry["correlation_id"] == "corr-1"


class TestConsoleFormatter:
    def test_includes_short_correlation_id(self):
        set_log_context(session_id="sess-1")
        record = make_record(correlation_id="0123456789abcdef")
        line = ConsoleFormatter().format(record)

        assert "[sess-1]" in line
        assert "[01234567]" in line
        assert line.endswith("hello")


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def cleanup(self):
        yield
        root_logger = logging.getLogger()
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers.clear()

    def test_console_and_file_handlers(self, tmp_path):
        setup_logging(name="authed_client", log_dir=tmp_path)
        root_logger = logging.getLogger()

        assert len(root_logger.handlers) == 2
        assert get_log_file_path(tmp_path, "authed_client").exists()

    def test_console_only(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_file=False)

        assert len(logging.getLogger().handlers) == 1
        assert list(tmp_path.iterdir()) == []

    def test_noisy_loggers_suppressed(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_file=False)
        assert logging.getLogger("aiohttp").level == logging.WARNING

    def test_reinit_does_not_duplicate_handlers(self, tmp_path):
        setup_logging(log_dir=tmp_path)
        setup_logging(log_dir=tmp_path)
        assert len(logging.getLogger().handlers) == 2

    def test_log_file_path_structure(self, tmp_path):
        path = get_log_file_path(tmp_path, "authed_client")
        assert path.parent.parent == tmp_path
        assert path.name.startswith("authed_client_")
        assert path.suffix == ".log"


class Widget(LoggedClass):
    log_component = "widget"

    def __init__(self, base_url):
        self.base_url = base_url
        super().__init__()

    @logged_operation(level=logging.INFO)
    async def fetch(self, fail=False):
        if fail:
            raise ServerError("upstream down", status_code=503)
        return "ok"


class TestLoggedClass:
    def test_logger_name_has_component(self):
        assert Widget("https://x.test")._logger.name.endswith(".widget")

    def test_instance_context_added(self, caplog):
        caplog.set_level(logging.DEBUG)
        Widget("https://x.test")._log(logging.INFO, "ping", http_status=200)

        record = caplog.records[-1]
        assert record.base_url == "https://x.test"
        assert record.http_status == 200

    @pytest.mark.asyncio
    async def test_logged_operation_success(self, caplog):
        caplog.set_level(logging.DEBUG)
        assert await Widget("https://x.test").fetch() == "ok"
        assert any(r.getMessage() == "Widget.fetch completed" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_logged_operation_failure_reraises(self, caplog):
        caplog.set_level(logging.DEBUG)
        with pytest.raises(ServerError):
            await Widget("https://x.test").fetch(fail=True)

        failed = [r for r in caplog.records if r.getMessage() == "Widget.fetch failed"]
        assert failed[0].levelno == logging.WARNING
        assert failed[0].error_category == "server_error"


class TestLogException:
    def test_message_sanitized(self, caplog):
        caplog.set_level(logging.DEBUG)
        logger = logging.getLogger("authed_client.test")
        log_exception(logger, ValueError("Bearer abc.def.ghi rejected"), "Oops", include_traceback=False)

        record = caplog.records[-1]
        assert "abc.def.ghi" not in record.error_message
        assert record.exc_info is None
