"""
Pytest fixtures for watch-batch-transcode tests.

Provides a throwaway folder layout, settings pointing at it, a fake ffmpeg
stage runner, a recording notifier and a sleep recorder so no test waits on
real time or needs ffmpeg installed.
"""

import dataclasses
from pathlib import Path
from typing import List, Optional

import pytest

from watchbatch.notify import Notifier
from watchbatch.orchestrator import Orchestrator
from watchbatch.utils import config


class FakeRunner:
    """Stands in for ffmpeg: writes the output file and returns a scripted exit code."""

    def __init__(self, temp_dir: Path, encode_code: int = 0, remux_code: int = 0, output_ratio: float = 0.5):
        self.temp_dir = temp_dir
        self.encode_code = encode_code
        self.remux_code = remux_code
        self.output_ratio = output_ratio
        self.calls: List[tuple] = []
        self.on_call = None

    @property
    def encode_calls(self) -> List[list]:
        return [cmd for stage, cmd in self.calls if stage == "encode"]

    @property
    def remux_calls(self) -> List[list]:
        return [cmd for stage, cmd in self.calls if stage == "remux"]

    def __call__(self, cmd, on_spawn=None):
        src = Path(cmd[cmd.index("-i") + 1])
        dst = Path(cmd[-1])
        stage = "encode" if dst.parent == self.temp_dir else "remux"
        self.calls.append((stage, list(cmd)))
        if self.on_call is not None:
            self.on_call(stage, cmd)

        size = src.stat().st_size if src.exists() else 0
        dst.write_bytes(b"\0" * max(1, int(size * self.output_ratio)))
        return self.encode_code if stage == "encode" else self.remux_code


class RecordingNotifier(Notifier):
    def __init__(self):
        super().__init__(topic="test-topic", server="http://ntfy.invalid")
        self.messages: List[str] = []

    def send(self, message: str, priority: Optional[str] = None) -> bool:
        self.messages.append(message)
        return True


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return round(sum(self.calls), 6)


@pytest.fixture
def folders(tmp_path: Path) -> dict:
    """Create the five watch folders under tmp_path."""
    layout = {
        "sources": tmp_path / "sources",
        "processed": tmp_path / "sources_processed",
        "completed": tmp_path / "completed",
        "failed": tmp_path / "failed",
        "temp": tmp_path / "tmp",
    }
    for path in layout.values():
        path.mkdir()
    return layout


@pytest.fixture
def settings(folders: dict) -> config.Settings:
    return config.Settings(
        sources_dir=folders["sources"],
        processed_dir=folders["processed"],
        completed_dir=folders["completed"],
        failed_dir=folders["failed"],
        temp_dir=folders["temp"],
        encode_args=config.build_encode_args("libx265", "24", "medium", "libopus", "96k"),
        remux_args=config.build_remux_args(),
        max_retries=3,
        retry_delay=5.0,
        poll_interval=1.0,
        stability_window=2.0,
    )


@pytest.fixture
def runner(folders: dict) -> FakeRunner:
    return FakeRunner(folders["temp"])


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(settings, runner, notifier, sleeper):
    """Build an Orchestrator wired to the fakes; keyword arguments override settings."""

    def _make(**overrides) -> Orchestrator:
        s = dataclasses.replace(settings, **overrides)
        return Orchestrator(s, notifier=notifier, runner=runner, sleep=sleeper, lock_check=lambda _p: False)

    return _make
