"""
Watch folder orchestrator: scan, check, claim, transcode, classify.

Exactly one file is in flight at a time. The folders themselves are the queue:
a file waiting in the sources folder is pending, a file in the processed folder
is claimed (or is the kept source of a finished job), and the completed and
failed folders hold the outcomes. Files only ever change folder through an
atomic rename.

Shutdown is cooperative. The signal handler only sets a flag and kills the live
ffmpeg process; the loop notices the flag at its checkpoints (after every
sleep and after every failed attempt) and unwinds into `shutdown()`, which puts an
unfinished file back into the sources folder and empties the scratch folder.
"""
import csv
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional, Set

from watchbatch.errors import ShutdownRequested, StartupError
from watchbatch.intake import readiness, scan
from watchbatch.job import Job, JobContext, JobStage
from watchbatch.ledger import Ledger, LedgerRecord
from watchbatch.notify import Notifier
from watchbatch.transcode import core
from watchbatch.transcode.pipeline import TranscodePipeline
from watchbatch.utils import file_util, logger, system_util, time_util
from watchbatch.utils.config import Settings
from watchbatch.utils.constants import (
    INTERMEDIATE_EXTENSION,
    LEDGER_HEADER,
    SLEEP_SLICE_SECONDS,
    STATUS_FAIL,
    STATUS_IDLE,
    STATUS_NOT_READY,
    STATUS_OK,
    STATUS_SKIP,
)
from watchbatch.utils.logger import LogLevel

KILL_WAIT_SECONDS = 5


class Orchestrator:
    """Main loop of the daemon."""

    def __init__(
            self,
            settings: Settings,
            notifier: Optional[Notifier] = None,
            ledger: Optional[Ledger] = None,
            runner: Callable[..., int] = core.run_stage,
            sleep: Callable[[float], None] = time.sleep,
            lock_check: Callable[[Path], Optional[bool]] = system_util.is_open_for_write,
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Static configuration
            notifier: Push notifier (built from settings if omitted)
            ledger: Success ledger (built from settings if omitted)
            runner: Runs one ffmpeg stage and returns its exit code
            sleep: Sleep function for poll, stability and retry waits
            lock_check: Open-for-write check used by the readiness detector
        """
        self.settings = settings
        self.context = JobContext()
        self.notifier = notifier or Notifier(settings.ntfy_topic, settings.ntfy_server, settings.ntfy_timeout)
        self.ledger = ledger or Ledger(settings.ledger_path)
        self.pipeline = TranscodePipeline(
            settings.encode_args,
            settings.remux_args,
            self.context,
            ffmpeg_binary=settings.ffmpeg_binary,
            runner=runner,
        )
        self._sleep_fn = sleep
        self._lock_check = lock_check
        self._last_rejected: Optional[str] = None
        self._reported_collisions: Set[str] = set()
        self._shutdown_done = False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Create the folders, empty the scratch folder and recover crash leftovers."""
        try:
            file_util.create_folders(self.settings.folders)
        except OSError as e:
            raise StartupError(f"Cannot create required folder: {e}") from e

        cleared = file_util.clear_directory(self.settings.temp_dir)
        if cleared:
            logger.log("startup.scratch_cleared", LogLevel.INFO, path=str(self.settings.temp_dir), removed=cleared)

        if self.settings.recover_on_startup:
            self.recover_processed()

    def _ledger_filenames(self) -> Optional[Set[str]]:
        path = self.settings.ledger_path
        if not path.exists():
            return set()
        try:
            with open(path, newline="", encoding="utf-8", errors="surrogateescape") as fh:
                return {row[0] for row in csv.reader(fh) if row and tuple(row) != LEDGER_HEADER}
        except (OSError, csv.Error) as e:
            logger.log("recovery.ledger_unreadable", LogLevel.ERROR, path=str(path), error=str(e))
            return None

    def recover_processed(self) -> int:
        """
        Return crash leftovers in the processed folder to the sources folder.

        A file in the processed folder is the kept source of a finished job only
        when it is listed in the ledger; those stay put. Anything else was
        claimed by a run that never finished. Its final output, if one exists,
        was cut short by the crash and is deleted (unless it belongs to a
        finished job with the same stem), then the file is renamed back so it is
        retried from the first attempt.

        Returns:
            Number of files moved back
        """
        finished = self._ledger_filenames()
        if finished is None:
            return 0
        finished_outputs = {self._new_job(name).final_path for name in finished}

        restored = 0
        for path in file_util.list_files(self.settings.processed_dir):
            if path.name in finished:
                continue
            logger.log("recovery.leftover", LogLevel.WARN, file=path.name,
                       msg="Claimed file found at startup, previous run was interrupted")
            stale_output = self._new_job(path.name).final_path
            if stale_output.exists() and stale_output not in finished_outputs:
                logger.log("recovery.partial_output", LogLevel.WARN, file=path.name, path=stale_output)
                file_util.remove_file(stale_output)
            if file_util.move_file(path, self.settings.sources_dir / path.name):
                restored += 1
        if restored:
            logger.log("recovery.complete", LogLevel.INFO, restored=restored)
        return restored

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> bool:
        """
        Run until a shutdown is requested.

        Returns:
            True after a graceful shutdown, False if the loop ended any other way
        """
        s = self.settings
        logger.log("daemon.start", LogLevel.INFO,
                   sources=str(s.sources_dir), processed=str(s.processed_dir),
                   completed=str(s.completed_dir), failed=str(s.failed_dir), scratch=str(s.temp_dir),
                   encode_args=" ".join(s.encode_args), remux_args=" ".join(s.remux_args),
                   container=s.container, max_retries=s.max_retries, retry_delay=s.retry_delay,
                   delete_after=s.delete_after, notifications=self.notifier.enabled)
        try:
            while not self.context.shutdown_requested:
                self.run_once()
        except ShutdownRequested:
            pass
        except Exception as e:
            logger.log("daemon.crashed", LogLevel.ERROR, error=repr(e))
            self._report_unexpected_exit()
            raise

        if self.context.shutdown_requested:
            self.shutdown()
            return True

        self._report_unexpected_exit()
        return False

    def run_once(self) -> str:
        """Run one scan cycle and return its status code."""
        self._checkpoint()
        s = self.settings

        logger.log("scan.start", LogLevel.TRACE, path=str(s.sources_dir))
        candidate = scan.next_candidate(s.sources_dir, after=self._last_rejected)
        if candidate is None:
            logger.log("scan.empty", LogLevel.TRACE, path=str(s.sources_dir))
            self._last_rejected = None
            self._sleep(s.poll_interval)
            return STATUS_IDLE

        if not readiness.is_ready(candidate, s.temp_suffixes, s.stability_window,
                                  sleep=self._pause, lock_check=self._lock_check):
            self._last_rejected = candidate.name
            self._sleep(s.poll_interval)
            return STATUS_NOT_READY

        self._checkpoint()
        job = self._claim(candidate)
        if job is None:
            self._last_rejected = candidate.name
            self._sleep(s.poll_interval)
            return STATUS_SKIP

        self._last_rejected = None
        try:
            return self._process(job)
        except ShutdownRequested:
            raise
        except Exception as e:
            return self._abort(job, e)

    def _new_job(self, filename: str) -> Job:
        s = self.settings
        stem = Path(filename).stem
        return Job(
            filename=filename,
            working_path=s.processed_dir / filename,
            scratch_path=s.temp_dir / f"{stem}{INTERMEDIATE_EXTENSION}",
            final_path=s.completed_dir / f"{stem}.{s.container}",
        )

    def _claim(self, candidate: Path) -> Optional[Job]:
        job = self._new_job(candidate.name)
        collision = job.working_path.exists()

        if not file_util.move_file(candidate, job.working_path):
            if collision and job.filename not in self._reported_collisions:
                self._reported_collisions.add(job.filename)
                self.notifier.send(
                    f"⚠️ Cannot claim {job.filename}: a file with the same name is already in "
                    f"{self.settings.processed_dir}. Rename or remove one of them.",
                    priority="high",
                )
            return None

        job.stage = JobStage.CLAIMED
        self.context.job = job
        job.input_size_bytes = file_util.get_file_size(job.working_path) or 0
        logger.log("intake.claimed", LogLevel.INFO, file=job.filename,
                   dst=str(job.working_path), size=job.input_size_bytes)
        return job

    def _process(self, job: Job) -> str:
        max_retries = self.settings.max_retries
        job.start()

        for attempt in range(1, max_retries + 1):
            job.attempt = attempt
            logger.log("job.attempt", LogLevel.INFO, file=job.filename, attempt=attempt, max_retries=max_retries)
            result = self.pipeline.process(job.working_path, job.scratch_path, job.final_path, attempt)
            if result.ok:
                return self._succeed(job)

            self._checkpoint()

            if attempt < max_retries:
                logger.log("job.retry_wait", LogLevel.INFO, file=job.filename, failed_stage=result.stage.value,
                           exit_code=result.exit_code, delay=self.settings.retry_delay)
                self._sleep(self.settings.retry_delay)

        return self._fail(job)

    def _succeed(self, job: Job) -> str:
        job.stage = JobStage.COMPLETED
        elapsed = job.elapsed()
        elapsed_str = time_util.format_hhmmss(elapsed)

        output_size = file_util.get_file_size(job.final_path)
        if output_size is None:
            logger.log("job.output_missing", LogLevel.WARN, file=job.filename, path=str(job.final_path))
            output_size = 0

        record = LedgerRecord(job.filename, job.input_size_bytes, output_size, elapsed)
        logger.log("job.complete", LogLevel.INFO, file=job.filename, attempts=job.attempt,
                   input_size=job.input_size_bytes, output_size=output_size,
                   ratio=f"{record.ratio:.2f}", time=elapsed_str)
        try:
            self.ledger.append(record)
        except (OSError, ValueError) as e:
            logger.log("ledger.write_failed", LogLevel.ERROR, path=str(self.ledger.path), error=str(e))

        self.notifier.send(f"✅ Successfully transcoded {job.filename} ({elapsed_str})")

        if self.settings.delete_after:
            if file_util.remove_file(job.working_path):
                logger.log("job.source_deleted", LogLevel.INFO, file=job.filename)
            else:
                self.notifier.send(
                    f"⚠️ Failed to remove source file {job.filename} after successful transcoding! "
                    f"- investigate, it should NOT happen.",
                    priority="high",
                )
        else:
            logger.log("job.source_kept", LogLevel.DEBUG, file=job.filename, path=str(job.working_path))

        self.context.job = None
        return STATUS_OK

    def _fail(self, job: Job) -> str:
        job.stage = JobStage.FAILED
        attempts = job.attempt
        failed_path = file_util.free_path(self.settings.failed_dir / job.filename)
        file_util.remove_file(job.scratch_path)

        logger.log("job.failed", LogLevel.ERROR, file=job.filename, attempts=attempts)
        if file_util.move_file(job.working_path, failed_path):
            logger.log("job.moved_to_failed", LogLevel.INFO, file=job.filename, dst=str(failed_path))
            self.notifier.send(f"❌ Failed to transcode {job.filename} after {attempts} attempts")
        else:
            self.notifier.send(
                f"⚠️ Failed to transcode {job.filename} after {attempts} attempts, and moving it to "
                f"{self.settings.failed_dir} also failed! It is still in {self.settings.processed_dir} "
                f"- investigate, it should NOT happen.",
                priority="high",
            )

        self.context.job = None
        return STATUS_FAIL

    def _abort(self, job: Job, error: Exception) -> str:
        """Classify a job that raised unexpectedly, so one bad file cannot stop the loop."""
        logger.log("job.error", LogLevel.ERROR, file=job.filename, stage=job.stage, error=repr(error))
        self.context.kill_process()
        self.context.detach_process()
        if job.stage == JobStage.COMPLETED:
            self.context.job = None
            return STATUS_OK
        if job.stage == JobStage.REMUXING:
            file_util.remove_file(job.final_path)
        return self._fail(job)

    # ------------------------------------------------------------------
    # Sleeping and cancellation
    # ------------------------------------------------------------------

    def _pause(self, seconds: float) -> None:
        """Sleep in short slices, returning early once shutdown is requested."""
        remaining = seconds
        while remaining > 0 and not self.context.shutdown_requested:
            step = min(remaining, SLEEP_SLICE_SECONDS)
            self._sleep_fn(step)
            remaining -= step

    def _sleep(self, seconds: float) -> None:
        self._pause(seconds)
        self._checkpoint()

    def _checkpoint(self) -> None:
        if self.context.shutdown_requested:
            raise ShutdownRequested()

    def request_shutdown(self, reason: str = "signal") -> None:
        """
        Ask the loop to stop. Safe to call from a signal handler.

        Sets the shutdown flag and hard-kills the live ffmpeg process; the rest
        of the shutdown runs on the main loop at its next checkpoint.
        """
        if self.context.shutdown_requested:
            return
        self.context.shutdown_requested = True
        logger.log("shutdown.requested", LogLevel.WARN, reason=reason)
        self.context.kill_process()

    def shutdown(self) -> None:
        """Kill the child, return an unfinished file to the sources folder, empty scratch. Runs once."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        self.context.shutdown_requested = True
        logger.log("shutdown.start", LogLevel.WARN)

        process = self.context.process
        self.context.kill_process()
        if process is not None:
            try:
                process.wait(timeout=KILL_WAIT_SECONDS)
            except subprocess.TimeoutExpired:
                logger.log("shutdown.kill_timeout", LogLevel.ERROR, pid=process.pid)
            self.context.detach_process()

        job = self.context.job
        if job is not None and job.is_unfinished:
            if job.stage == JobStage.REMUXING:
                file_util.remove_file(job.final_path)
            if job.working_path.exists():
                restore_path = self.settings.sources_dir / job.filename
                if file_util.move_file(job.working_path, restore_path):
                    logger.log("shutdown.restored", LogLevel.INFO, file=job.filename, dst=str(restore_path))
                else:
                    logger.log("shutdown.restore_failed", LogLevel.ERROR, file=job.filename,
                               path=str(job.working_path))
        self.context.job = None

        removed = file_util.clear_directory(self.settings.temp_dir)
        logger.log("shutdown.complete", LogLevel.INFO, scratch_removed=removed)

    def _report_unexpected_exit(self) -> None:
        logger.log("daemon.unexpected_exit", LogLevel.ERROR,
                   msg="Main loop finished, something's seriously wrong - this should not happen")
        self.notifier.send("⚠️ Script finished! - investigate, it should NOT happen.", priority="high")
