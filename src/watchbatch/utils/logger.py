"""
Key/value structured logging for the daemon.

Every line reads `<UTC timestamp> | [LEVEL] | <event> | key=value | ...`, so a
single grep on an event name (e.g. `job.failed`) finds every occurrence. Values
are rendered consistently (strings and paths quoted, enums by their value).
Output goes through `tqdm.write` so it never tears a progress bar.
"""
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Dict, Any, Optional

from tqdm import tqdm

_print_lock = threading.RLock()  # re-entered when a signal handler logs mid-line
_separator = " | "


class LogLevel(Enum):
    """Log level enumeration."""
    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4


_current_level = LogLevel.INFO


def set_log_level(level: LogLevel) -> None:
    """Set the current log level."""
    global _current_level
    _current_level = level


def get_log_level() -> LogLevel:
    """Get the current log level."""
    return _current_level


def parse_log_level(name: Optional[str], default: LogLevel = LogLevel.INFO) -> LogLevel:
    """Map a level name such as 'debug' or 'WARNING' to a LogLevel."""
    if not name:
        return default
    key = name.strip().upper()
    if key == "WARNING":
        key = "WARN"
    try:
        return LogLevel[key]
    except KeyError:
        return default


def _quote(text: str) -> str:
    # Filenames may contain anything, undecodable bytes included; entries stay on one line.
    text = text.encode("utf-8", "backslashreplace").decode("utf-8")
    text = text.replace("\r", "\\r").replace("\n", "\\n").replace('"', '\\"')
    return f'"{text}"'


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _format_value(value.value)
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, (str, PurePath)):
        return _quote(str(value))
    return str(value)


def _format_kv(data: Dict[str, Any]) -> str:
    """Render key=value pairs; strings and paths are quoted."""
    return _separator.join(f"{key}={_format_value(value)}" for key, value in data.items())


def _write_line(text: str) -> None:
    tqdm.write(text)


def _should_log(level: LogLevel) -> bool:
    """Check if a message at the given level should be logged."""
    return level.value >= _current_level.value


def log(event: str, level: LogLevel = LogLevel.INFO, **kwargs) -> None:
    """
    Write one structured line.

    Args:
        event: Dotted event name, e.g. 'intake.claimed' or 'transcode.encode.failed'
        level: Severity; lines below the current level are dropped
        **kwargs: Context fields appended as key=value pairs
    """
    if not _should_log(level):
        return

    fields = [datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"), f"[{level.name}]", event]
    if kwargs:
        fields.append(_format_kv(kwargs))
    with _print_lock:
        _write_line(_separator.join(fields))
