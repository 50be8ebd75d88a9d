"""
Utility functions for running system commands and verifying binary availability.

Functions:
    - run_cmd: Executes a system command and returns its exit code along with its
      standard output and error streams.
    - has_binary: Reports whether a binary is on the system's PATH.
    - which_or_die: Terminates the process if a required binary is unavailable.
    - is_open_for_write: Asks lsof whether any process holds a file open for
      writing.
"""
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Tuple, List, Optional

from watchbatch.utils import logger
from watchbatch.utils.logger import LogLevel

LSOF_BINARY = "lsof"


def run_cmd(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a command and return (code, stdout, stderr)."""
    p = subprocess.run(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    return p.returncode, p.stdout, p.stderr


def has_binary(binary: str) -> bool:
    return shutil.which(binary) is not None


def which_or_die(binary: str):
    """Check if a binary exists on PATH, exit if not found."""
    if not has_binary(binary):
        logger.log("startup.error", LogLevel.ERROR,
                   msg=f"'{binary}' not found on PATH. Install it first.",
                   binary=binary)
        sys.exit(2)


def is_open_for_write(path: Path) -> Optional[bool]:
    """
    Check whether any process has `path` open for writing.

    Uses lsof field output (`-F a`), where each open descriptor reports an
    access mode of r, w or u (read/write).

    Returns:
        True or False, or None when lsof is not installed and the check
        cannot be made.

    Raises:
        OSError: If lsof exists but could not be run.
    """
    if not has_binary(LSOF_BINARY):
        return None

    code, out, _ = run_cmd([LSOF_BINARY, "-w", "-F", "a", "--", str(path)])
    if code != 0:
        # lsof exits 1 when no process has the file open
        return False

    for line in out.splitlines():
        if line.startswith("a") and ("w" in line[1:] or "u" in line[1:]):
            return True
    return False
