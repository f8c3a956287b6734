"""Logging utilities module.

Messages may mark values for highlighting: `$$'title'$$` for quoted values and
`$${key: value}$$` for structured context. Console output colors them, file
output keeps the values and drops the markers.
"""

import logging
import re
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType
from typing import ClassVar

import colorama
from colorama import Fore, Style

__all__ = ["Logger", "get_logger"]

QUOTED_PATTERN = re.compile(r"\$\$'((?:[^']|'(?!\$\$))*)'\$\$")
BRACED_PATTERN = re.compile(r"\$\$\{(.*?)\}\$\$")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class MarkupFormatter(logging.Formatter):
    """Formatter that rewrites highlight markers before formatting.

    Subclasses choose what quoted and braced values are replaced with. The
    record is restored after formatting so other handlers see the original.
    """

    QUOTED_REPLACEMENT: ClassVar[str] = "'\\1'"
    BRACED_REPLACEMENT: ClassVar[str] = "{\\1}"

    def render_levelname(self, levelname: str) -> str:
        return levelname

    def format(self, record: logging.LogRecord) -> str:
        """Format a record with its markers replaced.

        Args:
            record (logging.LogRecord): Log record to format

        Returns:
            str: The formatted log line
        """
        orig_msg, orig_levelname = record.msg, record.levelname
        record.levelname = self.render_levelname(record.levelname)
        if isinstance(record.msg, str):
            record.msg = BRACED_PATTERN.sub(
                self.BRACED_REPLACEMENT,
                QUOTED_PATTERN.sub(self.QUOTED_REPLACEMENT, record.msg),
            )

        try:
            return super().format(record)
        finally:
            record.msg, record.levelname = orig_msg, orig_levelname


class ColorFormatter(MarkupFormatter):
    """Console formatter with ANSI colors.

    Levels are colored by severity, quoted values light blue and braced
    values dimmed.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "SUCCESS": Fore.GREEN + Style.BRIGHT,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }
    QUOTED_REPLACEMENT = f"{Fore.LIGHTBLUE_EX}'\\1'{Style.RESET_ALL}"
    BRACED_REPLACEMENT = f"{Style.DIM}{{\\1}}{Style.RESET_ALL}"

    def render_levelname(self, levelname: str) -> str:
        return f"{self.COLORS.get(levelname, '')}{levelname}{Style.RESET_ALL}"


class CleanFormatter(MarkupFormatter):
    """Plain formatter for log files and terminals without color support."""


def _caller_class_name(frame: FrameType) -> str | None:
    """Name of the class whose method owns `frame`, if any."""
    owner = frame.f_locals.get("self")
    if owner is not None:
        return None if isinstance(owner, logging.Logger) else type(owner).__name__
    cls = frame.f_locals.get("cls")
    return cls.__name__ if isinstance(cls, type) else None


class Logger(logging.Logger):
    """Logger with a SUCCESS level and automatic class name prefixes."""

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
        """Prefix messages logged from inside a method with the owning class name."""
        if isinstance(msg, str):
            try:
                # 0 is _log, 1 the level method, 2 the caller
                class_name = _caller_class_name(sys._getframe(2))
            except ValueError:
                class_name = None
            if class_name:
                msg = f"{class_name}: {msg}"

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
        """Log a message with SUCCESS level."""
        self.log(self.SUCCESS, msg, *args, **kwargs)

    def _level_value(self, log_level: str) -> int:
        level = str(log_level).upper()
        return self.SUCCESS if level == "SUCCESS" else getattr(logging, level)

    def setup(self, log_level: str, log_dir: str | None = None) -> None:
        """Replace the handlers with console output and an optional rotating file.

        Args:
            log_level (str): Logging level ('DEBUG', 'INFO', 'SUCCESS', etc.)
            log_dir (str | None, optional): Directory where log files will be stored.
        """
        from metachan.utils import terminal

        try:
            use_color = terminal.supports_color()
            if use_color:
                if sys.platform == "win32":
                    colorama.just_fix_windows_console()
                else:
                    colorama.init()
        except (AttributeError, OSError):
            use_color = False

        level_value = self._level_value(log_level)
        self.setLevel(level_value)
        for handler in self.handlers[:]:
            self.removeHandler(handler)

        # Debug output carries the source location of each message
        log_format = (
            "%(asctime)s - %(name)s - %(levelname)s\t%(filename)s:%(lineno)d\t"
            "%(message)s"
            if level_value <= logging.DEBUG
            else "%(asctime)s - %(name)s - %(levelname)s\t%(message)s"
        )
        console_formatter_cls = ColorFormatter if use_color else CleanFormatter

        handlers: list[logging.Handler] = [logging.StreamHandler()]
        handlers[0].setFormatter(console_formatter_cls(log_format, datefmt=DATE_FORMAT))

        if log_dir is not None:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path / f"{self.name}.{str(log_level).upper()}.log",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
            file_handler.setFormatter(CleanFormatter(log_format, datefmt=DATE_FORMAT))
            handlers.append(file_handler)

        for handler in handlers:
            handler.setLevel(level_value)
            self.addHandler(handler)


logging.setLoggerClass(Logger)


def _get_logger(
    log_name: str, log_level: str = "INFO", log_dir: str | Path | None = None
) -> Logger:
    """Get a configured instance of Logger.

    Args:
        log_name (str): Name of the logger and base name for log file.
        log_level (str): Logging level. Defaults to "INFO".
        log_dir (str | Path | None): Directory where log files will be stored.

    Returns:
        Logger: Configured logger instance
    """
    logger = logging.getLogger(log_name)
    if not isinstance(logger, Logger):
        logger = Logger(log_name)

    logger.setup(log_level, str(log_dir) if log_dir is not None else None)
    return logger


@lru_cache(maxsize=1)
def get_logger() -> Logger:
    """Get the application logger, configured from the settings.

    Returns:
        Logger: Main application logger instance
    """
    from metachan.config.settings import get_config

    config = get_config()

    return _get_logger(
        log_name="Metachan",
        log_level=config.log_level,
        log_dir=config.data_path / "logs",
    )
