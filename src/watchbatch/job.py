"""
Job model for the single file currently being processed.

`JobContext` is the one piece of shared state between the processing loop and
the signal handler: it holds the in-flight job (if any), the live ffmpeg
process (if any) and the shutdown flag.
"""
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from watchbatch.utils import logger
from watchbatch.utils.logger import LogLevel


class JobStage(Enum):
    DISCOVERED = "discovered"
    CLAIMED = "claimed"
    ENCODING = "encoding"
    REMUXING = "remuxing"
    COMPLETED = "completed"
    FAILED = "failed"


UNFINISHED_STAGES = frozenset({JobStage.CLAIMED, JobStage.ENCODING, JobStage.REMUXING})


@dataclass
class Job:
    """A single file moving through claim, encode, remux and classification."""

    filename: str
    working_path: Path
    scratch_path: Path
    final_path: Path
    stage: JobStage = JobStage.DISCOVERED
    attempt: int = 0
    input_size_bytes: int = 0
    started_at: Optional[float] = None

    @property
    def is_unfinished(self) -> bool:
        return self.stage in UNFINISHED_STAGES

    def start(self) -> None:
        """Record the wall-clock start of the first attempt."""
        if self.started_at is None:
            self.started_at = time.time()

    def elapsed(self, now: Optional[float] = None) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, (time.time() if now is None else now) - self.started_at)


@dataclass
class JobContext:
    """Current job, current child process and shutdown flag, owned by the orchestrator."""

    job: Optional[Job] = None
    process: Optional[subprocess.Popen] = None
    shutdown_requested: bool = False

    def set_stage(self, stage: JobStage) -> None:
        if self.job is not None:
            self.job.stage = stage

    def attach_process(self, process: subprocess.Popen) -> None:
        """Register the live child; a child started after shutdown was requested is killed at once."""
        self.process = process
        if self.shutdown_requested:
            self.kill_process()

    def detach_process(self) -> None:
        self.process = None

    def kill_process(self) -> None:
        """Hard-kill the live child, tolerating one that has already exited."""
        process = self.process
        if process is None or process.poll() is not None:
            return
        logger.log("process.kill", LogLevel.WARN, pid=process.pid)
        try:
            process.kill()
        except (ProcessLookupError, OSError):
            # Process already terminated
            pass
