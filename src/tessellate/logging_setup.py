"""Logging for tessellate.

Everything under the "tessellate" logger lands in <data dir>/logs/tessellate.log.
Old files are gzipped on rollover. Browser hosts run detached with no terminal,
so they log to the file only. Other commands also echo warnings to stderr.

Environment:
    TESSELLATE_LOG_LEVEL: Logger level (default: config log_level, then INFO).
    TESSELLATE_STDERR_LOG_LEVEL: Threshold for the stderr handler (default: WARNING).
    TESSELLATE_LOG_MAX_SIZE_MB: Size at which the file rolls over (default: 10).
    TESSELLATE_LOG_BACKUP_COUNT: Rolled-over files kept (default: 5).
"""

import gzip
import logging
import os
import shutil
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tessellate.core.config import get_data_dir, get_log_level

LOG_FORMAT = "%(asctime)s %(process)d %(levelname)-7s %(name)s: %(message)s"
STDERR_FORMAT = "%(levelname)s: %(message)s"

_configured = False


def get_log_path() -> Path:
    """Get the path of the primary log file."""
    return get_data_dir() / "logs" / "tessellate.log"


def configure_logging(stderr: bool = True) -> Path:
    """Attach tessellate's handlers to the "tessellate" logger.

    Only the first call in a process has an effect.

    Args:
        stderr: Add a stderr handler next to the log file. Browser hosts
            pass False.

    Returns:
        Path to the primary log file.
    """
    global _configured

    log_path = get_log_path()
    if _configured:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("tessellate")
    logger.setLevel(getattr(logging, get_log_level(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_file_handler(log_path))
    if stderr:
        logger.addHandler(_stderr_handler())

    _configured = True
    return log_path


def _file_handler(log_path: Path) -> RotatingFileHandler:
    size_mb = _env_int("TESSELLATE_LOG_MAX_SIZE_MB", 10)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=size_mb * 1024 * 1024,
        backupCount=_env_int("TESSELLATE_LOG_BACKUP_COUNT", 5),
        encoding="utf-8",
    )
    handler.namer = _gzip_name
    handler.rotator = _gzip_rotate
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _stderr_handler() -> logging.Handler:
    level_name = os.environ.get("TESSELLATE_STDERR_LOG_LEVEL", "WARNING").upper()
    handler = logging.StreamHandler()
    handler.setLevel(getattr(logging, level_name, logging.WARNING))
    handler.setFormatter(logging.Formatter(STDERR_FORMAT))
    return handler


def _gzip_name(default_name: str) -> str:
    return default_name + ".gz"


def _gzip_rotate(source: str, dest: str) -> None:
    """Compress a rolled-over log file into dest and drop the original."""
    src_path = Path(source)
    with src_path.open("rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    src_path.unlink(missing_ok=True)


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment.

    Unset, non-numeric and non-positive values all give the default.
    """
    try:
        value = int(os.environ.get(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default
