"""
Functions to build ffmpeg command lines and run one transcode stage.

The encode stage always writes a Matroska intermediate into the scratch folder,
whatever the final container is, so a broken encode can never be confused with
a broken remux. The remux stage then rewrites that intermediate into the final
container, by default copying streams and moving the index to the front of the
file for progressive playback.

A stage is judged only by the exit status of its process. ffmpeg output is
passed straight through to the daemon's own stdout/stderr and never parsed.
"""
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from watchbatch.utils import logger
from watchbatch.utils.constants import DEFAULT_FFMPEG_BINARY, SPAWN_FAILED_EXIT_CODE
from watchbatch.utils.logger import LogLevel


class Stage(str, Enum):
    ENCODE = "encode"
    REMUX = "remux"


def build_encode_cmd(src: Path, intermediate: Path, encode_args: Sequence[str],
                     ffmpeg_binary: str = DEFAULT_FFMPEG_BINARY) -> List[str]:
    """Build the ffmpeg command that encodes `src` into the scratch intermediate."""
    return [ffmpeg_binary, "-hide_banner", "-y", "-i", str(src), *encode_args, str(intermediate)]


def build_remux_cmd(intermediate: Path, dst: Path, remux_args: Sequence[str],
                    ffmpeg_binary: str = DEFAULT_FFMPEG_BINARY) -> List[str]:
    """Build the ffmpeg command that rewrites the intermediate into the final container."""
    return [ffmpeg_binary, "-hide_banner", "-y", "-i", str(intermediate), *remux_args, str(dst)]


def run_stage(cmd: List[str],
              on_spawn: Optional[Callable[[subprocess.Popen], None]] = None) -> int:
    """
    Run one stage in the foreground and block until it exits.

    Args:
        cmd: Full command line
        on_spawn: Called with the live process right after it starts, so the
            caller can kill it on shutdown

    Returns:
        The process exit code (negative when killed by a signal), or
        SPAWN_FAILED_EXIT_CODE if the process could not be started
    """
    logger.log("transcode.exec", LogLevel.DEBUG, cmd=" ".join(cmd))
    try:
        process = subprocess.Popen(cmd, stdin=subprocess.DEVNULL)
    except OSError as e:
        logger.log("transcode.spawn_failed", LogLevel.ERROR, binary=cmd[0], error=str(e))
        return SPAWN_FAILED_EXIT_CODE

    if on_spawn is not None:
        on_spawn(process)
    return process.wait()
