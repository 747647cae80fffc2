from __future__ import annotations

import logging

from context_client.logger import default_logger, gated_logger, scoped_logger
from tests.unit.helpers.factories import RecordingLogger


class TestLoggers:
    def test_default_logger_uses_stdlib_logging(self, caplog):
        """Test default logger uses stdlib logging."""
        with caplog.at_level(logging.INFO, logger="context_client"):
            default_logger("hello")

        assert caplog.records[-1].name == "context_client"
        assert caplog.records[-1].getMessage() == "hello"

    def test_scoped_logger_prefixes(self, recording_logger):
        """Test scoped logger prefixes."""
        scoped_logger(recording_logger, "providerClient(x)")("checking")

        assert recording_logger.messages == ["providerClient(x): checking"]

    def test_scoped_logger_of_none(self):
        """Test scoping a missing logger."""
        assert scoped_logger(None, "scope") is None

    def test_gated_logger_follows_predicate(self):
        """Test gated logger follows predicate."""
        sink = RecordingLogger()
        enabled = {"on": False}
        log = gated_logger(sink, lambda: enabled["on"])

        log("dropped")
        enabled["on"] = True
        log("kept")

        assert sink.messages == ["kept"]
