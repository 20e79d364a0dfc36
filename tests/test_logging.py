"""Tests for logging setup."""

import gzip
import logging
from logging.handlers import RotatingFileHandler

import pytest
from click.testing import CliRunner

from tessellate import logging_setup
from tessellate.cli import main


@pytest.fixture
def fresh_logging(monkeypatch):
    """Allow configure_logging to run, and drop its handlers afterwards."""
    monkeypatch.setattr(logging_setup, "_configured", False)
    logger = logging.getLogger("tessellate")
    saved_level = logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(saved_level)


def test_configure_logging_writes_file(data_dir, fresh_logging):
    log_path = logging_setup.configure_logging(stderr=False)

    assert log_path == data_dir / "logs" / "tessellate.log"
    logging.getLogger("tessellate.core.state").info("hello from test")
    for handler in fresh_logging.handlers:
        handler.flush()

    assert "hello from test" in log_path.read_text()


def test_configure_logging_level_from_env(data_dir, fresh_logging, monkeypatch):
    monkeypatch.setenv("TESSELLATE_LOG_LEVEL", "debug")

    logging_setup.configure_logging(stderr=False)

    assert fresh_logging.level == logging.DEBUG


def test_configure_logging_once(data_dir, fresh_logging):
    logging_setup.configure_logging()
    handlers = list(fresh_logging.handlers)

    logging_setup.configure_logging()

    assert fresh_logging.handlers == handlers
    assert len(handlers) == 2


def test_env_int_parsing(monkeypatch):
    monkeypatch.delenv("TESSELLATE_LOG_MAX_SIZE_MB", raising=False)
    assert logging_setup._env_int("TESSELLATE_LOG_MAX_SIZE_MB", 10) == 10
    monkeypatch.setenv("TESSELLATE_LOG_MAX_SIZE_MB", "oops")
    assert logging_setup._env_int("TESSELLATE_LOG_MAX_SIZE_MB", 10) == 10
    monkeypatch.setenv("TESSELLATE_LOG_MAX_SIZE_MB", "0")
    assert logging_setup._env_int("TESSELLATE_LOG_MAX_SIZE_MB", 10) == 10
    monkeypatch.setenv("TESSELLATE_LOG_MAX_SIZE_MB", "3")
    assert logging_setup._env_int("TESSELLATE_LOG_MAX_SIZE_MB", 10) == 3


def test_rollover_is_gzipped(tmp_path):
    source = tmp_path / "tessellate.log"
    source.write_text("old line\n")
    dest = logging_setup._gzip_name(str(tmp_path / "tessellate.log.1"))

    logging_setup._gzip_rotate(str(source), dest)

    assert dest.endswith(".log.1.gz")
    assert not source.exists()
    with gzip.open(dest, "rt") as f:
        assert f.read() == "old line\n"


def _stderr_handlers(logger):
    return [
        h
        for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
    ]


def test_browse_logs_to_file_only(data_dir, fresh_logging, monkeypatch):
    monkeypatch.setattr("tessellate.commands.browse.wait_for_shutdown", lambda b, i: None)

    result = CliRunner().invoke(main, ["browse"])

    assert result.exit_code == 0
    assert _stderr_handlers(fresh_logging) == []
    assert any(isinstance(h, RotatingFileHandler) for h in fresh_logging.handlers)


def test_other_commands_log_to_stderr(data_dir, fresh_logging):
    result = CliRunner().invoke(main, ["sessions", "list"])

    assert result.exit_code == 0
    assert len(_stderr_handlers(fresh_logging)) == 1
