"""
Tests for the logging configuration.
"""

import io
import json
import logging
from unittest.mock import patch

import pytest

from netmode.logging_config import (
    NOTICE,
    FeatureArea,
    NetmodeFormatter,
    NetmodeLogger,
    configure_from_environment,
    feature_for,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def make_record(name="netmode.orchestrator", level=logging.INFO, msg="hello", extra_data=None):
    record = logging.LogRecord(name, level, __file__, 1, msg, (), None)
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestFeatureMapping:
    """Tests for feature_for."""

    @pytest.mark.parametrize("name,feature", [
        ("netmode.state.lock", FeatureArea.STATE),
        ("netmode.state.cooldown", FeatureArea.STATE),
        ("netmode.enforcement.workload", FeatureArea.WORKLOAD),
        ("netmode.enforcement.conntrack", FeatureArea.ENFORCEMENT),
        ("netmode.cli.netmodectl", FeatureArea.CLI),
        ("netmode.orchestrator", FeatureArea.CORE),
    ])
    def test_feature_for(self, name, feature):
        assert feature_for(name) == feature


class TestFormatter:
    """Tests for NetmodeFormatter."""

    def test_text_format(self):
        formatter = NetmodeFormatter(use_colors=False)
        line = formatter.format(make_record(name="netmode.state.lock", msg="Acquired"))

        assert "INFO" in line
        assert "[state]" in line
        assert line.endswith("Acquired")

    def test_text_extra_data(self):
        line = NetmodeFormatter(use_colors=False).format(make_record(extra_data={'trigger': 'promote'}))
        assert line.endswith("hello | trigger=promote")

    def test_no_colors_on_non_tty(self):
        formatter = NetmodeFormatter(use_colors=True, stream=io.StringIO())
        assert not formatter.use_colors
        assert '\033[' not in formatter.format(make_record())

    def test_json_format(self):
        line = NetmodeFormatter(json_format=True).format(
            make_record(name="netmode.enforcement.conntrack", extra_data={'mode': 'production'})
        )
        data = json.loads(line)
        assert data['feature'] == 'enforcement'
        assert data['message'] == 'hello'
        assert data['extra'] == {'mode': 'production'}


class TestNetmodeLogger:
    """Tests for NetmodeLogger helpers."""

    def test_get_logger_class(self):
        assert isinstance(get_logger("netmode.tests.logger"), NetmodeLogger)

    def test_transition_levels(self, caplog):
        """Failures log at ERROR, other milestones at NOTICE."""
        logger = get_logger("netmode.tests.transition")
        with caplog.at_level(logging.DEBUG, logger="netmode.tests.transition"):
            logger.transition("stopped", "maintenance", "completed")
            logger.transition("stopped", "maintenance", "failed", reason="cooldown")

        levels = [r.levelno for r in caplog.records]
        assert levels == [NOTICE, logging.ERROR]
        assert caplog.records[0].getMessage() == "Transition stopped -> maintenance: completed"
        assert caplog.records[1].extra_data == {'reason': 'cooldown'}

    def test_transition_below_level(self, caplog):
        logger = get_logger("netmode.tests.quiet")
        with caplog.at_level(logging.WARNING, logger="netmode.tests.quiet"):
            logger.transition("production", "stopped", "started")
        assert caplog.records == []


class TestSetup:
    """Tests for setup_logging and environment configuration."""

    def test_verbose_level(self):
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_default_level_and_console(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, NetmodeFormatter)

    def test_log_file(self, temp_dir):
        log_file = temp_dir / "logs" / "netmode.log"
        setup_logging(log_file=str(log_file), console=False)

        logging.getLogger("netmode.tests.file").warning("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "written to file" in log_file.read_text()

    @patch('netmode.logging_config.setup_logging')
    def test_configure_from_environment(self, mock_setup, monkeypatch, temp_dir):
        monkeypatch.setenv("NETMODE_VERBOSE", "1")
        monkeypatch.setenv("NETMODE_LOG_JSON", "true")
        monkeypatch.setenv("NETMODE_LOG_NO_CONSOLE", "yes")
        monkeypatch.setenv("NETMODE_LOG_FILE", str(temp_dir / "env.log"))

        configure_from_environment()

        mock_setup.assert_called_once_with(
            verbose=True,
            log_file=str(temp_dir / "env.log"),
            console=False,
            json_format=True,
        )

    @patch('netmode.logging_config.setup_logging')
    def test_arguments_override_environment(self, mock_setup, monkeypatch, temp_dir):
        monkeypatch.delenv("NETMODE_VERBOSE", raising=False)
        monkeypatch.delenv("NETMODE_LOG_JSON", raising=False)
        monkeypatch.delenv("NETMODE_LOG_NO_CONSOLE", raising=False)
        monkeypatch.setenv("NETMODE_LOG_FILE", str(temp_dir / "env.log"))

        configure_from_environment(verbose=True, log_file=str(temp_dir / "cli.log"))

        mock_setup.assert_called_once_with(
            verbose=True,
            log_file=str(temp_dir / "cli.log"),
            console=True,
            json_format=False,
        )
