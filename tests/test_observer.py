"""Tests for session observers."""

from __future__ import annotations

import logging

import pytest

from sakurakit.events import AudioArtifact, MalformedMessage
from sakurakit.observer import LoggingObserver, NoOpObserver, SessionObserver, notify_observer


class TestNotifyObserver:
    """Tests for notify_observer()."""

    def test_none_observer(self) -> None:
        assert notify_observer(None, "on_connected", "wss://x") is False

    def test_missing_method_skipped(self) -> None:
        class Partial:
            pass

        assert notify_observer(Partial(), "on_connected", "wss://x") is False

    def test_method_invoked(self, observer) -> None:
        assert notify_observer(observer, "on_connected", "wss://x") is True
        assert observer.names() == ["on_connected"]

    def test_exception_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a raising observer is logged, not propagated."""

        class Broken:
            def on_closed(self, code, reason) -> None:
                raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="sakurakit.observer"):
            assert notify_observer(Broken(), "on_closed", 1000, "") is False

        assert "on_closed" in caplog.text


class TestLoggingObserver:
    """Tests for LoggingObserver."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(LoggingObserver(), SessionObserver)
        assert isinstance(NoOpObserver(), SessionObserver)

    def test_artifact_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        artifact = AudioArtifact(audio=b"abcd", chunk_count=2, request_id="req-1")
        with caplog.at_level(logging.INFO, logger="sakurakit.session"):
            LoggingObserver().on_artifact(artifact)

        assert "4 bytes from 2 chunks" in caplog.text
        assert "req-1" in caplog.text

    def test_malformed_logged_as_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        message = MalformedMessage(text="{", error="Invalid JSON: Expecting value")
        with caplog.at_level(logging.WARNING, logger="sakurakit.session"):
            LoggingObserver().on_malformed_message(message)

        [record] = caplog.records
        assert record.levelno == logging.WARNING
        assert "Invalid JSON" in record.getMessage()

    def test_custom_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        log = logging.getLogger("myapp.voice")
        with caplog.at_level(logging.INFO, logger="myapp.voice"):
            LoggingObserver(log).on_connected("wss://x.test")

        assert caplog.records[0].name == "myapp.voice"
