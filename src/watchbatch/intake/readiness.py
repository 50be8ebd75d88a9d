"""
Readiness checks for files sitting in the intake folder.

Files copied over the network or saved by a browser show up in a directory
listing long before they are complete. Three independent checks are layered
because each one alone gives false answers: a temporary-download suffix, an
open-for-write handle reported by lsof, and a size that stays unchanged across
a short sampling window.
"""
import subprocess
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchbatch.utils import file_util, logger, system_util
from watchbatch.utils.constants import DEFAULT_STABILITY_WINDOW_SECONDS, DEFAULT_TEMP_SUFFIXES
from watchbatch.utils.logger import LogLevel


def has_temp_suffix(filename: str, temp_suffixes: Iterable[str]) -> Optional[str]:
    """Return the matching temporary suffix (case-sensitive), or None."""
    for suffix in temp_suffixes:
        if filename.endswith(suffix):
            return suffix
    return None


def is_ready(
        path: Path,
        temp_suffixes: Iterable[str] = DEFAULT_TEMP_SUFFIXES,
        stability_window: float = DEFAULT_STABILITY_WINDOW_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        lock_check: Callable[[Path], Optional[bool]] = system_util.is_open_for_write,
) -> bool:
    """
    Decide whether `path` is safe to claim.

    Checks run in order and stop at the first negative answer. Never raises:
    anything that prevents a check from completing means "not ready".

    Args:
        path: Candidate file in the intake folder
        temp_suffixes: Filename endings that mark an unfinished download
        stability_window: Seconds between the two size samples
        sleep: Sleep function used for the stability window
        lock_check: Returns True if a writer holds the file open, None if unknown

    Returns:
        True if the file passed every check
    """
    filename = path.name
    logger.log("readiness.check", LogLevel.DEBUG, file=filename)

    suffix = has_temp_suffix(filename, temp_suffixes)
    if suffix:
        logger.log("readiness.skip", LogLevel.DEBUG, file=filename, reason="temporary suffix", suffix=suffix)
        return False

    try:
        locked = lock_check(path)
    except (OSError, subprocess.SubprocessError) as e:
        logger.log("readiness.skip", LogLevel.WARN, file=filename, reason="lock check failed", error=str(e))
        return False
    if locked:
        logger.log("readiness.skip", LogLevel.INFO, file=filename, reason="open for writing")
        return False

    initial_size = file_util.get_file_size(path)
    if initial_size is None:
        logger.log("readiness.vanished", LogLevel.WARN, file=filename,
                   msg="File disappeared from intake before it could be claimed")
        return False
    if initial_size == 0:
        logger.log("readiness.skip", LogLevel.DEBUG, file=filename, reason="empty file")
        return False

    sleep(stability_window)

    new_size = file_util.get_file_size(path)
    if new_size is None:
        logger.log("readiness.vanished", LogLevel.WARN, file=filename,
                   msg="File disappeared during the stability check")
        return False
    if new_size != initial_size:
        logger.log("readiness.skip", LogLevel.INFO, file=filename, reason="size changed",
                   size_before=initial_size, size_after=new_size)
        return False

    logger.log("readiness.ready", LogLevel.INFO, file=filename, size=new_size)
    return True
