"""
Tests for observability — level resolution and the session log handler.
"""

import logging

import pytest

from mfgi.core.observability.logging_config import (
    attach_session_log,
    detach_session_log,
    resolve_level,
    setup_logging,
)


class TestResolveLevel:
    @pytest.mark.parametrize(
        "kwargs, expected",
        [
            ({}, "WARNING"),
            ({"env_level": "error"}, "ERROR"),
            ({"env_debug": True, "env_level": "error"}, "DEBUG"),
            ({"verbose": True, "env_debug": True}, "INFO"),
            ({"debug": True, "verbose": True}, "DEBUG"),
        ],
    )
    def test_precedence(self, kwargs, expected):
        assert resolve_level(**kwargs) == expected


class TestSetupLogging:
    def test_single_console_handler(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        try:
            setup_logging("INFO")
            setup_logging("DEBUG")
            assert len(root.handlers) == 1
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = handlers
            root.setLevel(level)

    def test_unknown_level_falls_back(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        try:
            setup_logging("LOUD")
            assert root.level == logging.WARNING
        finally:
            root.handlers[:] = handlers
            root.setLevel(level)


class TestSessionHandler:
    def test_info_reaches_file_whatever_console_level(self, tmp_path):
        path = tmp_path / "session.log"
        root = logging.getLogger()
        saved = root.level
        root.setLevel(logging.WARNING)
        handler = attach_session_log(path)
        try:
            logging.getLogger("mfgi.test").info("Flathub: added (user)")
            logging.getLogger("mfgi.test").debug("too chatty")
        finally:
            detach_session_log(handler)
            root.setLevel(saved)

        text = path.read_text()
        assert "Flathub: added (user)" in text
        assert "mfgi.test" in text
        assert "too chatty" not in text
        assert handler not in root.handlers

    def test_detach_none(self):
        detach_session_log(None)
