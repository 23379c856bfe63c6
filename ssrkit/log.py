"""Timestamped log lines for standard error or syslog."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = ("INFO", "ERROR")
_COLORS = {"INFO": "\x1b[01;32m", "ERROR": "\x1b[01;35m"}
_RESET = "\x1b[0m"


@dataclass
class _Settings:
    use_tty: bool = True
    use_syslog: bool = False


_settings = _Settings()


def configure_logging(use_tty=None, use_syslog=False, ident=None):
    """Choose where log lines go.

    With ``use_tty`` left as None, colour is used when standard error is a
    terminal. With ``use_syslog`` set, lines go to the system log under
    ``ident`` instead of standard error.
    """
    if use_tty is None:
        isatty = getattr(sys.stderr, "isatty", None)
        use_tty = bool(isatty and isatty())
    _settings.use_tty = bool(use_tty)
    if use_syslog:
        try:
            import syslog
        except ImportError as exc:
            raise RuntimeError("syslog is not available on this platform") from exc
        syslog.openlog(ident or "", syslog.LOG_CONS | syslog.LOG_PID, 0)
    _settings.use_syslog = bool(use_syslog)


def _normalise_level(level: str) -> str:
    name = str(level).upper()
    if name not in _LEVELS:
        raise ValueError(f"unknown log level: {level!r}")
    return name


def format_line(level, message, tty=False, now=None):
    """Return one log line, without the trailing newline."""
    name = _normalise_level(level)
    stamp = (now or datetime.now()).strftime(TIME_FORMAT)
    if tty:
        return f"{_COLORS[name]} {stamp} {name}: {_RESET}{message}"
    return f" {stamp} {name}: {message}"


def _emit(level: str, message: str) -> None:
    if _settings.use_syslog:
        import syslog

        priority = syslog.LOG_INFO if level == "INFO" else syslog.LOG_ERR
        syslog.syslog(priority, message)
        return
    stream = sys.stderr
    stream.write(format_line(level, message, tty=_settings.use_tty) + "\n")
    stream.flush()


def log_info(message):
    """Log an informational message."""
    _emit("INFO", str(message))


def log_error(message):
    """Log an error message."""
    _emit("ERROR", str(message))