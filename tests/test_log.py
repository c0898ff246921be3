"""Tests for logging setup, cancellation tokens and hosts."""

import json
import logging

import pytest
import structlog

from verse_copilot.cancellation import CancellationToken
from verse_copilot.errors import RequestCancelledError
from verse_copilot.host import ConsoleHost, RecordingHost
from verse_copilot.log import configure_logging, request_context


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_log_file_includes_request_context(tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "copilot.jsonl"
    configure_logging(verbosity=-1, log_file=log_file)

    with request_context(request_id="abc123"):
        structlog.get_logger("test").warning("completion_failed", error="empty")
    structlog.get_logger("test").warning("outside")

    lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert lines[0]["event"] == "completion_failed"
    assert lines[0]["request_id"] == "abc123"
    assert "request_id" not in lines[1]


def test_cancellation_token_runs_callbacks_once():
    calls = []
    token = CancellationToken()
    token.on_cancel(lambda: calls.append("a"))
    token.cancel("document changed")
    token.cancel("again")

    assert calls == ["a"]
    assert token.cancelled
    assert token.reason == "document changed"
    with pytest.raises(RequestCancelledError):
        token.raise_if_cancelled()


def test_callback_registered_after_cancel_runs_immediately():
    calls = []
    token = CancellationToken()
    token.cancel()
    token.on_cancel(lambda: calls.append("late"))
    assert calls == ["late"]


def test_recording_host_drain():
    host = RecordingHost()
    host.show_info("busy")
    host.show_error("failed")
    assert host.drain() == {"info": ["busy"], "warning": [], "error": ["failed"]}
    assert host.drain() == {"info": [], "warning": [], "error": []}


def test_console_host_keeps_insertions():
    from io import StringIO

    from rich.console import Console

    output = StringIO()
    host = ConsoleHost(Console(file=output))
    host.show_warning("Some resources are unavailable")
    host.insert_text(" the sky")
    assert host.inserted == [" the sky"]
    assert "Some resources are unavailable" in output.getvalue()
