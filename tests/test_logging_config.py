"""
Tests for logging setup.

Run: python3 -m pytest tests/test_logging_config.py -v
"""

import logging
import logging.handlers
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from syswhy.utils.logging_config import ColoredFormatter, parse_level, reset_logging, setup_logging


@pytest.fixture(autouse=True)
def clean_root_logger():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    reset_logging()
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    reset_logging()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_stderr_handler(self):
        """Test the console handler writes to stderr, never stdout."""
        setup_logging(level=logging.INFO)
        root = logging.getLogger()
        stream_handlers = [h for h in root.handlers if type(h) is logging.StreamHandler]
        assert len(stream_handlers) == 1
        assert stream_handlers[0].stream is sys.stderr
        assert root.level == logging.INFO

    def test_second_call_ignored(self):
        setup_logging(level=logging.INFO)
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger().level == logging.INFO

    def test_force_reconfigures(self):
        setup_logging(level=logging.INFO)
        setup_logging(level=logging.ERROR, force=True)
        assert logging.getLogger().level == logging.ERROR

    def test_log_file(self, tmp_path):
        """Test a rotating file handler captures debug detail."""
        log_file = tmp_path / 'logs' / 'syswhy.log'
        setup_logging(level=logging.WARNING, log_file=str(log_file))

        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert root.level == logging.DEBUG

        logging.getLogger('syswhy.test').debug("probe detail")
        file_handlers[0].flush()
        assert 'probe detail' in log_file.read_text()

    def test_no_colors(self):
        setup_logging(use_colors=False)
        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, ColoredFormatter)


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def test_no_color_when_not_tty(self):
        class Pipe:
            def isatty(self):
                return False

        formatter = ColoredFormatter("%(levelname)s", stream=Pipe())
        record = logging.makeLogRecord({'levelname': 'WARNING', 'msg': 'x'})
        assert formatter.format(record) == 'WARNING'

    def test_color_does_not_leak_into_record(self):
        class Tty:
            def isatty(self):
                return True

        formatter = ColoredFormatter("%(levelname)s", stream=Tty())
        record = logging.makeLogRecord({'levelname': 'ERROR', 'msg': 'x'})
        assert '\033[31m' in formatter.format(record)
        assert record.levelname == 'ERROR'


class TestParseLevel:
    """Tests for parse_level function."""

    def test_names(self):
        assert parse_level('debug') == logging.DEBUG
        assert parse_level('ERROR') == logging.ERROR

    def test_unknown(self):
        assert parse_level('chatty') == logging.WARNING
        assert parse_level('chatty', logging.INFO) == logging.INFO
