"""Tests for structured logging setup."""

import asyncio
import json
import logging
from typing import Iterator, Optional

import pytest
import structlog

from errandforge.observability.logging import (
    add_session_id,
    current_session_id,
    get_logger,
    session_scope,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


class TestSessionScope:
    """Tests for binding a session to log events."""

    def test_scope_binds_and_restores(self) -> None:
        """The session should be bound inside the block only."""
        assert current_session_id() is None

        with session_scope("session-abc") as bound:
            assert bound == "session-abc"
            assert current_session_id() == "session-abc"

        assert current_session_id() is None

    def test_scopes_nest(self) -> None:
        """Leaving an inner scope should restore the outer session."""
        with session_scope("outer"):
            with session_scope("inner"):
                assert current_session_id() == "inner"
            assert current_session_id() == "outer"

    def test_scope_restored_on_error(self) -> None:
        """An exception inside the block should still unbind the session."""
        with pytest.raises(RuntimeError):
            with session_scope("session-abc"):
                raise RuntimeError("boom")

        assert current_session_id() is None

    async def test_concurrent_tasks_keep_their_own_session(self) -> None:
        """Concurrent tasks should each see the session they bound."""

        async def work(session_id: str) -> Optional[str]:
            with session_scope(session_id):
                await asyncio.sleep(0)
                return current_session_id()

        results = await asyncio.gather(work("session-1"), work("session-2"))

        assert results == ["session-1", "session-2"]

    def test_processor_adds_session_id(self) -> None:
        """The processor should inject the bound session id."""
        with session_scope("session-abc"):
            event = add_session_id(logging.getLogger("test"), "info", {"event": "x"})
        assert event["session_id"] == "session-abc"

    def test_processor_keeps_explicit_session_id(self) -> None:
        """An explicit session_id in the event should win."""
        with session_scope("session-abc"):
            event = add_session_id(
                logging.getLogger("test"), "info", {"event": "x", "session_id": "other"}
            )
        assert event["session_id"] == "other"

    def test_processor_without_session(self) -> None:
        """Without a session the event should be unchanged."""
        event = add_session_id(logging.getLogger("test"), "info", {"event": "x"})
        assert "session_id" not in event


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_logs_include_session_id(self, caplog: pytest.LogCaptureFixture) -> None:
        """JSON output should carry the event name and session id."""
        setup_logging(log_level="INFO", json_logs=True)

        with caplog.at_level(logging.INFO), session_scope("session-json"):
            get_logger("errandforge.test.json").info("daily_scan_started", scans=3)

        messages = [
            record.getMessage()
            for record in caplog.records
            if "daily_scan_started" in record.getMessage()
        ]
        assert messages
        payload = json.loads(messages[-1])
        assert payload["event"] == "daily_scan_started"
        assert payload["session_id"] == "session-json"
        assert payload["scans"] == 3
        assert payload["level"] == "info"
        assert payload["logger"] == "errandforge.test.json"

    def test_console_logs(self) -> None:
        """Console configuration should produce a usable logger."""
        setup_logging(log_level="DEBUG", json_logs=False)
        get_logger("errandforge.test.console").debug("console_event")
        assert structlog.is_configured()
