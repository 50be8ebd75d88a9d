"""
Two-stage transcode pipeline for a single attempt on a single file.

An attempt succeeds only when both the encode and the remux stage exit with
status zero. Whenever a stage fails, the intermediate and any partially written
final file are deleted before the result is returned, so no partial artifact
survives a failed attempt.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from watchbatch.job import JobContext, JobStage
from watchbatch.transcode import core
from watchbatch.transcode.core import Stage
from watchbatch.utils import file_util, logger
from watchbatch.utils.constants import DEFAULT_FFMPEG_BINARY
from watchbatch.utils.logger import LogLevel


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one attempt: success, or the failing stage and its exit code."""

    ok: bool
    stage: Optional[Stage] = None
    exit_code: Optional[int] = None
    cancelled: bool = False

    @classmethod
    def success(cls) -> "PipelineResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, stage: Stage, exit_code: Optional[int], cancelled: bool = False) -> "PipelineResult":
        return cls(ok=False, stage=stage, exit_code=exit_code, cancelled=cancelled)


class TranscodePipeline:
    """Runs encode then remux, registering each live process with the job context."""

    def __init__(
            self,
            encode_args: Sequence[str],
            remux_args: Sequence[str],
            context: JobContext,
            ffmpeg_binary: str = DEFAULT_FFMPEG_BINARY,
            runner: Callable[..., int] = core.run_stage,
    ):
        self.encode_args = tuple(encode_args)
        self.remux_args = tuple(remux_args)
        self.context = context
        self.ffmpeg_binary = ffmpeg_binary
        self._runner = runner

    def _run(self, cmd: List[str]) -> int:
        try:
            return self._runner(cmd, self.context.attach_process)
        finally:
            self.context.detach_process()

    def process(self, job_path: Path, scratch_path: Path, final_path: Path, attempt: int) -> PipelineResult:
        """
        Run one attempt for the claimed file at `job_path`.

        Args:
            job_path: Claimed file in the working folder
            scratch_path: Matroska intermediate in the scratch folder
            final_path: Final output in the completed folder
            attempt: 1-based attempt number, for logging

        Returns:
            PipelineResult describing the attempt
        """
        filename = job_path.name

        self.context.set_stage(JobStage.ENCODING)
        logger.log("transcode.encode.start", LogLevel.INFO, file=filename, attempt=attempt,
                   args=" ".join(self.encode_args))
        code = self._run(core.build_encode_cmd(job_path, scratch_path, self.encode_args, self.ffmpeg_binary))
        if code != 0:
            logger.log("transcode.encode.failed", LogLevel.ERROR, file=filename, attempt=attempt, exit_code=code)
            file_util.remove_file(scratch_path)
            return PipelineResult.failure(Stage.ENCODE, code, cancelled=self.context.shutdown_requested)
        logger.log("transcode.encode.complete", LogLevel.INFO, file=filename, intermediate=str(scratch_path))

        if self.context.shutdown_requested:
            file_util.remove_file(scratch_path)
            return PipelineResult.failure(Stage.REMUX, None, cancelled=True)

        self.context.set_stage(JobStage.REMUXING)
        logger.log("transcode.remux.start", LogLevel.INFO, file=filename, attempt=attempt, dst=str(final_path))
        code = self._run(core.build_remux_cmd(scratch_path, final_path, self.remux_args, self.ffmpeg_binary))
        if code != 0:
            logger.log("transcode.remux.failed", LogLevel.ERROR, file=filename, attempt=attempt, exit_code=code)
            file_util.remove_file(scratch_path)
            file_util.remove_file(final_path)
            return PipelineResult.failure(Stage.REMUX, code, cancelled=self.context.shutdown_requested)

        file_util.remove_file(scratch_path)
        logger.log("transcode.remux.complete", LogLevel.INFO, file=filename, dst=str(final_path))
        return PipelineResult.success()
