"""Tests for structured logging.

Tests:
- configure_logging installs one structlog-formatted root handler
- driver loggers are kept at WARNING
- bound_actor propagates the actor into log events
"""

import json
import logging

import pytest

from mongo_crud.config import Settings
from mongo_crud.core.logging import DRIVER_LOGGERS, _add_actor, actor_var, bound_actor, configure_logging


@pytest.fixture
def root_logging():
    """Restore the root logger after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Test structured logging configuration."""

    def test_sets_root_level(self, root_logging):
        """configure_logging sets root logger level."""
        configure_logging(log_level="DEBUG", log_format="json")
        assert root_logging.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, root_logging):
        configure_logging(log_level="chatty", log_format="json")
        assert root_logging.level == logging.INFO

    def test_single_handler_after_reconfiguring(self, root_logging):
        """Calling twice does not stack handlers."""
        configure_logging(log_format="json")
        configure_logging(log_format="console")
        assert len(root_logging.handlers) == 1

    def test_level_defaults_to_settings(self, root_logging, monkeypatch):
        """Without arguments the level comes from settings."""
        monkeypatch.setattr(
            "mongo_crud.core.logging.get_settings",
            lambda: Settings(_env_file=None, log_level="WARNING"),
        )
        configure_logging()
        assert root_logging.level == logging.WARNING

    def test_driver_loggers_suppressed(self, root_logging):
        """Driver loggers stay at WARNING even at DEBUG."""
        configure_logging(log_level="DEBUG", log_format="json")
        for name in DRIVER_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_json_lines_carry_actor(self, root_logging, capsys):
        """Stdlib records render as JSON with the bound actor."""
        configure_logging(log_level="INFO", log_format="json")

        with bound_actor("jon"):
            logging.getLogger("mongo_crud.test").info("Created record 1 in cats")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Created record 1 in cats"
        assert event["actor"] == "jon"
        assert event["level"] == "info"


class TestBoundActor:
    """Test actor context propagation."""

    def test_default_none(self):
        assert actor_var.get() is None

    def test_bound_inside_block_only(self):
        with bound_actor("jon"):
            assert actor_var.get() == "jon"
        assert actor_var.get() is None

    def test_reset_on_error(self):
        with pytest.raises(RuntimeError):
            with bound_actor("jon"):
                raise RuntimeError("boom")
        assert actor_var.get() is None

    def test_structured_actor_stringified(self):
        with bound_actor({"id": "u1"}):
            assert actor_var.get() == "{'id': 'u1'}"

    def test_processor_adds_actor(self):
        with bound_actor("jon"):
            event = _add_actor(None, "info", {"event": "x"})
        assert event == {"event": "x", "actor": "jon"}

    def test_processor_without_actor(self):
        assert _add_actor(None, "info", {"event": "x"}) == {"event": "x"}
