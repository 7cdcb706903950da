"""
Tests for the command line entry point and logging setup.

Run: python3 -m pytest tests/test_main.py -v
"""

import logging
from unittest.mock import patch

import pytest

from bandwidth_bro import __version__
from bandwidth_bro.main import main, parse_args
from bandwidth_bro.utils import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert not args.debug
        assert not args.once

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Tests for main() wiring."""

    @patch("bandwidth_bro.main.Scheduler")
    @patch("bandwidth_bro.main.SystemCollaborator")
    def test_once_runs_single_cycle(self, mock_collaborator, mock_scheduler, tmp_path,
                                    monkeypatch, restore_root_logger):
        monkeypatch.delenv("DEBUG_MODE", raising=False)
        log_file = tmp_path / "report.log"

        exit_code = main(["--once", "--config", str(tmp_path / "none.json"),
                          "--log-file", str(log_file)])

        assert exit_code == 0
        config = mock_collaborator.call_args[0][0]
        assert config.log_file == str(log_file)
        scheduler = mock_scheduler.return_value
        scheduler.install_signal_handlers.assert_called_once()
        scheduler.run.assert_called_once_with(max_cycles=1)
        assert f"Logging to {log_file}" in log_file.read_text()

    @patch("bandwidth_bro.main.Scheduler")
    @patch("bandwidth_bro.main.SystemCollaborator")
    def test_environment_configures_run(self, mock_collaborator, mock_scheduler, tmp_path,
                                        monkeypatch, restore_root_logger):
        monkeypatch.setenv("TEST_HOST", "9.9.9.9")
        monkeypatch.setenv("INTERVAL", "12")
        monkeypatch.setenv("DEBUG_MODE", "1")
        monkeypatch.setenv("LOGFILE", str(tmp_path / "env.log"))

        main(["--config", str(tmp_path / "none.json")])

        config = mock_collaborator.call_args[0][0]
        assert config.test_host == "9.9.9.9"
        assert config.interval == 12
        assert config.debug is True
        assert logging.getLogger().level == logging.DEBUG
        mock_scheduler.return_value.run.assert_called_once_with(max_cycles=None)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_handler_only(self, restore_root_logger):
        root = setup_logging(logging.WARNING)
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_file_handler(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "debug.log"
        root = setup_logging(logging.DEBUG, log_file=log_file)

        logging.getLogger("bandwidth_bro.test").debug("written to file")
        for handler in root.handlers:
            handler.flush()

        assert len(root.handlers) == 2
        assert "written to file" in log_file.read_text()
