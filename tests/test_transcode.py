"""Tests for ffmpeg command building, stage execution and the two-stage pipeline."""

import sys
from pathlib import Path

import pytest

from watchbatch.job import Job, JobContext, JobStage
from watchbatch.transcode import Stage, TranscodePipeline, build_encode_cmd, build_remux_cmd, run_stage
from watchbatch.utils.constants import DEFAULT_REMUX_ARGS, SPAWN_FAILED_EXIT_CODE
from conftest import FakeRunner

ENCODE_ARGS = ("-c:v", "libx265", "-crf", "24")


class TestCommandBuilders:
    def test_encode_cmd_shape(self):
        cmd = build_encode_cmd(Path("/p/in.avi"), Path("/t/in.mkv"), ENCODE_ARGS)
        assert cmd == ["ffmpeg", "-hide_banner", "-y", "-i", "/p/in.avi",
                       "-c:v", "libx265", "-crf", "24", "/t/in.mkv"]

    def test_remux_cmd_shape(self):
        cmd = build_remux_cmd(Path("/t/in.mkv"), Path("/c/in.mp4"), DEFAULT_REMUX_ARGS, ffmpeg_binary="/opt/ffmpeg")
        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "/t/in.mkv"
        assert cmd[-1] == "/c/in.mp4"
        assert "+faststart" in cmd

    def test_filenames_with_spaces_stay_single_arguments(self):
        cmd = build_encode_cmd(Path("/p/My Movie, Part 1.avi"), Path("/t/My Movie, Part 1.mkv"), ())
        assert "/p/My Movie, Part 1.avi" in cmd


class TestRunStage:
    def test_returns_exit_code(self):
        assert run_stage([sys.executable, "-c", "import sys; sys.exit(3)"]) == 3

    def test_success_and_on_spawn_receives_process(self):
        spawned = []
        assert run_stage([sys.executable, "-c", "pass"], on_spawn=spawned.append) == 0
        assert len(spawned) == 1
        assert spawned[0].pid > 0

    def test_missing_binary_is_a_stage_failure(self, tmp_path):
        assert run_stage([str(tmp_path / "no-such-ffmpeg"), "-version"]) == SPAWN_FAILED_EXIT_CODE


@pytest.fixture
def layout(tmp_path):
    processed = tmp_path / "processed"
    scratch = tmp_path / "tmp"
    completed = tmp_path / "completed"
    for d in (processed, scratch, completed):
        d.mkdir()
    src = processed / "movie.avi"
    src.write_bytes(b"x" * 1000)
    return src, scratch / "movie.mkv", completed / "movie.mp4"


def _pipeline(runner, context=None):
    return TranscodePipeline(ENCODE_ARGS, DEFAULT_REMUX_ARGS, context or JobContext(), runner=runner)


class TestPipeline:
    def test_success_leaves_only_final_output(self, layout):
        src, scratch, final = layout
        runner = FakeRunner(scratch.parent)
        result = _pipeline(runner).process(src, scratch, final, attempt=1)

        assert result.ok
        assert final.exists()
        assert not scratch.exists()
        assert src.exists()
        assert [stage for stage, _ in runner.calls] == ["encode", "remux"]

    def test_encode_failure_skips_remux_and_removes_intermediate(self, layout):
        src, scratch, final = layout
        runner = FakeRunner(scratch.parent, encode_code=1)
        result = _pipeline(runner).process(src, scratch, final, attempt=1)

        assert not result.ok
        assert result.stage == Stage.ENCODE
        assert result.exit_code == 1
        assert runner.remux_calls == []
        assert not scratch.exists()
        assert not final.exists()

    def test_remux_failure_removes_partial_final_output(self, layout):
        src, scratch, final = layout
        runner = FakeRunner(scratch.parent, remux_code=1)
        result = _pipeline(runner).process(src, scratch, final, attempt=2)

        assert not result.ok
        assert result.stage == Stage.REMUX
        assert not scratch.exists()
        assert not final.exists()

    def test_stage_recorded_on_job(self, layout):
        src, scratch, final = layout
        context = JobContext(job=Job(src.name, src, scratch, final, stage=JobStage.CLAIMED))
        seen = []
        runner = FakeRunner(scratch.parent)
        runner.on_call = lambda stage, cmd: seen.append(context.job.stage)
        _pipeline(runner, context).process(src, scratch, final, attempt=1)
        assert seen == [JobStage.ENCODING, JobStage.REMUXING]

    def test_shutdown_after_encode_cancels_before_remux(self, layout):
        src, scratch, final = layout
        context = JobContext()
        runner = FakeRunner(scratch.parent)

        def _request_shutdown(stage, cmd):
            context.shutdown_requested = True

        runner.on_call = _request_shutdown
        result = _pipeline(runner, context).process(src, scratch, final, attempt=1)

        assert result.cancelled
        assert runner.remux_calls == []
        assert not scratch.exists()

    def test_process_detached_after_each_stage(self, layout):
        src, scratch, final = layout
        context = JobContext()
        attached = []

        class _Proc:
            pid = 4242

            def poll(self):
                return 0

        def _runner(cmd, on_spawn):
            proc = _Proc()
            on_spawn(proc)
            attached.append(context.process)
            Path(cmd[-1]).write_bytes(b"out")
            return 0

        assert _pipeline(_runner, context).process(src, scratch, final, attempt=1).ok
        assert len(attached) == 2
        assert context.process is None


class _FakeProcess:
    def __init__(self, returncode=None, raise_on_kill=None):
        self.pid = 99
        self.returncode = returncode
        self.killed = False
        self._raise_on_kill = raise_on_kill

    def poll(self):
        return self.returncode

    def kill(self):
        if self._raise_on_kill:
            raise self._raise_on_kill
        self.killed = True


class TestJobContext:
    def test_attach_after_shutdown_kills_immediately(self):
        context = JobContext(shutdown_requested=True)
        proc = _FakeProcess()
        context.attach_process(proc)
        assert proc.killed

    def test_kill_skips_exited_process(self):
        context = JobContext()
        proc = _FakeProcess(returncode=0)
        context.attach_process(proc)
        context.kill_process()
        assert not proc.killed

    def test_kill_tolerates_vanished_process(self):
        context = JobContext()
        context.attach_process(_FakeProcess(raise_on_kill=ProcessLookupError()))
        context.kill_process()

    def test_job_elapsed(self):
        job = Job("a.mkv", Path("a"), Path("b"), Path("c"))
        assert job.elapsed() == 0.0
        job.started_at = 100.0
        assert job.elapsed(now=163.5) == 63.5
