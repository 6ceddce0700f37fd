"""Unit tests for server logging setup."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from gdrive_mcp.server.google_drive_server import configure_logging


@contextmanager
def bare_root_logger() -> Iterator[logging.Logger]:
    """Strip the root logger's handlers, restoring them and its level on exit."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    try:
        yield root
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_should_honor_level_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GDRIVE_MCP_LOG_LEVEL", "debug")

        with bare_root_logger() as root:
            configure_logging()

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert root.handlers[0].stream is sys.stderr

    def test_should_default_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GDRIVE_MCP_LOG_LEVEL", raising=False)

        with bare_root_logger() as root:
            configure_logging()

            assert root.level == logging.INFO

    def test_should_fall_back_to_info_for_unknown_level(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GDRIVE_MCP_LOG_LEVEL", "chatty")

        with bare_root_logger() as root:
            configure_logging()

            assert root.level == logging.INFO

    def test_should_keep_stdout_free_for_transport(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify no handler writes to stdout, which carries MCP messages."""
        monkeypatch.setenv("GDRIVE_MCP_LOG_LEVEL", "warning")

        with bare_root_logger() as root:
            configure_logging()

            assert root.level == logging.WARNING
            assert all(getattr(h, "stream", None) is not sys.stdout for h in root.handlers)
