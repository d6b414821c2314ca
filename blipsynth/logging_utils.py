"""Logging setup for blipsynth.

Importing the package installs a console handler on the ``blipsynth``
logger and nothing else. The file log under ``BLIPSYNTH_LOG_DIR`` is only
attached by the command line entry point, so library use never touches the
filesystem.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("blipsynth.logging")
LOG_DIR_ENV = "BLIPSYNTH_LOG_DIR"
DEBUG_ENV = "BLIPSYNTH_DEBUG"
PACKAGE_LOGGER = "blipsynth"
_LOG_FILE = "blipsynth.log"
_CONSOLE_HANDLER = "blipsynth.console"
_FILE_HANDLER = "blipsynth.file"
_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})
_CONSOLE_FORMAT = "%(level_prefix)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LEVEL_PREFIXES = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}


class _ConsoleEmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.level_prefix = _LEVEL_PREFIXES.get(record.levelno, "")
        return super().format(record)


def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() not in _FALSE_VALUES


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "blipsynth" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def _named_handler(logger: logging.Logger, name: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == name:
            return handler
    return None


def _drop_handler(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.removeHandler(handler)
    handler.close()


def configure_logging(*, force: bool = False) -> None:
    """Install the console handler once; ``force`` rebuilds it from the environment.

    Nothing is added when the root logger already has handlers (an app or
    test harness owns output then) unless ``force`` is set.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    # App/test harness handlers still see our records.
    logger.propagate = True

    existing = _named_handler(logger, _CONSOLE_HANDLER)
    if existing is not None:
        if not force:
            return
        _drop_handler(logger, existing)
    elif logging.getLogger().handlers and not force:
        return

    console_handler = logging.StreamHandler(stream=sys.__stderr__)
    console_handler.set_name(_CONSOLE_HANDLER)
    console_handler.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    console_handler.setFormatter(_ConsoleEmojiFormatter(_CONSOLE_FORMAT))
    logger.addHandler(console_handler)


def set_console_level(level: int) -> None:
    handler = _named_handler(logging.getLogger(PACKAGE_LOGGER), _CONSOLE_HANDLER)
    if handler is not None:
        handler.setLevel(level)


def attach_file_log() -> Path | None:
    """Send every ``blipsynth`` record at DEBUG and above to the log file.

    Re-attaching follows ``BLIPSYNTH_LOG_DIR``: a handler pointing elsewhere
    is closed and replaced. Returns the log path, or ``None`` when the
    directory cannot be created.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    path = get_log_path()
    existing = _named_handler(logger, _FILE_HANDLER)
    if isinstance(existing, logging.FileHandler):
        if Path(existing.baseFilename) == path.absolute():
            return path
        _drop_handler(logger, existing)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("File logging disabled: %s", exc)
        return None

    file_handler.set_name(_FILE_HANDLER)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FORMAT))
    logger.addHandler(file_handler)
    return path


def detach_file_log() -> None:
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = _named_handler(logger, _FILE_HANDLER)
    if handler is not None:
        _drop_handler(logger, handler)


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` with its traceback to the log file and return its path."""

    path = get_log_path()
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    stamp = datetime.now().isoformat(timespec="seconds")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{stamp}] {context} failed: {type(exc).__name__}: {exc}\n")
            handle.writelines(lines)
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Could not write crash log %s: %s", path, log_exc)
        return None
    return path
