"""Logging utilities module.

Messages may highlight values with two inline markers. ``$$'value'$$`` marks a
quoted value such as a title and ``$${key: value}$$`` marks a block of
identifiers. The console formatter colors them; the file formatter drops the
markers and keeps the text.
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import ClassVar

import colorama
from colorama import Fore, Style

__all__ = ["CleanFormatter", "ColorFormatter", "Logger", "get_logger", "log_scope"]

# Target or source list the current task is working on
_scope: ContextVar[str | None] = ContextVar("log_scope", default=None)

QUOTED_PATTERN = re.compile(r"\$\$'((?:[^']|'(?!\$\$))*)'\$\$")
BRACED_PATTERN = re.compile(r"\$\$\{(.*?)\}\$\$")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


@contextmanager
def log_scope(name: str) -> Iterator[None]:
    """Prefix every log line emitted inside the block with ``[name]``.

    The scope lives in a context variable, so tasks created inside the block
    (queue workers, gathered fetches) carry it too.

    Args:
        name (str): Scope label, usually a target or source list name.
    """
    token = _scope.set(name)
    try:
        yield
    finally:
        _scope.reset(token)


class _MarkerFormatter(logging.Formatter):
    """Base formatter that rewrites the inline markers before formatting."""

    quoted = "'\\1'"
    braced = "{\\1}"

    def render(self, msg: str) -> str:
        return BRACED_PATTERN.sub(self.braced, QUOTED_PATTERN.sub(self.quoted, msg))

    def format(self, record: logging.LogRecord) -> str:
        if not isinstance(record.msg, str):
            return super().format(record)
        original = record.msg
        record.msg = self.render(original)
        try:
            return super().format(record)
        finally:
            record.msg = original


class ColorFormatter(_MarkerFormatter):
    """Console formatter with ANSI colors.

    Levels are colored by severity, quoted values are light blue and braced
    identifier blocks are dimmed.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "SUCCESS": Fore.GREEN + Style.BRIGHT,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }

    quoted = f"{Fore.LIGHTBLUE_EX}'\\1'{Style.RESET_ALL}"
    braced = f"{Style.DIM}{{\\1}}{Style.RESET_ALL}"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        if color:
            record.levelname = f"{color}{levelname}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class CleanFormatter(_MarkerFormatter):
    """Plain formatter for log files and terminals without color support."""


def _owner_name(frame) -> str | None:
    """Name of the class whose method is running in ``frame``, if any."""
    owner = frame.f_locals.get("self")
    if owner is not None and not isinstance(owner, logging.Logger):
        return type(owner).__name__
    cls = frame.f_locals.get("cls")
    if isinstance(cls, type):
        return cls.__name__
    return None


class Logger(logging.Logger):
    """Application logger.

    Adds a SUCCESS level between INFO and WARNING and renders messages as
    ``[scope] ClassName: message``. The scope comes from :func:`log_scope`,
    the class name from the calling method's ``self`` or ``cls``.
    """

    SUCCESS = logging.INFO + 5

    def __init__(self, name, level=logging.NOTSET):
        super().__init__(name, level)
        if logging.getLevelName(self.SUCCESS) != "SUCCESS":
            logging.addLevelName(self.SUCCESS, "SUCCESS")

    def _log(
        self,
        level,
        msg,
        args,
        exc_info=None,
        extra=None,
        stack_info=False,
        stacklevel=1,
    ):
        if isinstance(msg, str):
            # 0 is this frame, 1 the level method, 2 whoever called it
            try:
                owner = _owner_name(sys._getframe(2))
            except ValueError:
                owner = None
            if owner:
                msg = f"{owner}: {msg}"
            scope = _scope.get()
            if scope:
                msg = f"[{scope}] {msg}"

        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def success(self, msg, *args, **kwargs):
        """Log ``msg`` at SUCCESS level."""
        if self.isEnabledFor(self.SUCCESS):
            self._log(self.SUCCESS, msg, args, **kwargs)

    @staticmethod
    def _enable_color() -> bool:
        from src.utils import terminal

        try:
            if not terminal.supports_color():
                return False
        except OSError:
            return False
        if sys.platform == "win32":
            colorama.just_fix_windows_console()
        else:
            colorama.init()
        return True

    def setup(self, log_level: str, log_dir: str | None = None) -> None:
        """Swap the current handlers for a console handler and, optionally, a file.

        Args:
            log_level (str): Level name such as ``DEBUG`` or ``SUCCESS``. Unknown
                names fall back to INFO.
            log_dir (str | None): Directory for a rotating ``<name>.log`` file.
        """
        level = logging.getLevelName(str(log_level).upper())
        if not isinstance(level, int):
            level = logging.INFO
        self.setLevel(level)

        for handler in list(self.handlers):
            self.removeHandler(handler)
            handler.close()

        fmt = "%(asctime)s - %(levelname)s\t%(message)s"
        if level <= logging.DEBUG:
            fmt = "%(asctime)s - %(levelname)s\t%(filename)s:%(lineno)d\t%(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"

        handlers: list[logging.Handler] = []
        if log_dir is not None:
            path = Path(log_dir)
            path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path / f"{self.name}.log",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
            file_handler.setFormatter(CleanFormatter(fmt, datefmt=datefmt))
            handlers.append(file_handler)

        console_cls = ColorFormatter if self._enable_color() else CleanFormatter
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(console_cls(fmt, datefmt=datefmt))
        handlers.append(console_handler)

        for handler in handlers:
            handler.setLevel(level)
            self.addHandler(handler)


logging.setLoggerClass(Logger)


def _get_logger(
    log_name: str, log_level: str = "INFO", log_dir: str | Path | None = None
) -> Logger:
    """Return a logger named ``log_name`` with fresh handlers.

    Used directly by modules that log before the settings are loaded.
    """
    logger = logging.getLogger(log_name)
    if not isinstance(logger, Logger):
        logger = Logger(log_name)
    logger.setup(log_level, str(log_dir) if log_dir is not None else None)
    return logger


@lru_cache(maxsize=1)
def get_logger() -> Logger:
    """Return the application logger, configured from the loaded settings."""
    from src.config.settings import get_config

    config = get_config()
    return _get_logger("WatchlistBridge", config.log_level, config.data_path / "logs")
