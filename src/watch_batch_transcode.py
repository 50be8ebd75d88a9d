#!/usr/bin/env python3
"""
watch-batch-transcode: watch a folder and transcode every file dropped into it.

Configuration comes from environment variables (optionally from a `.env` file).
The process runs until it receives SIGTERM or SIGINT, at which point the
running ffmpeg is killed, the file being processed is returned to the sources
folder and the scratch folder is emptied.
"""

import argparse
import atexit
import signal
import sys
from pathlib import Path

import watchbatch
from watchbatch.errors import StartupError
from watchbatch.orchestrator import Orchestrator
from watchbatch.utils import LogLevel, config, logger, system_util


class _TeeStream:
    def __init__(self, *streams):
        self._streams = streams

    def write(self, data):
        for stream in self._streams:
            stream.write(data)
        return len(data)

    def flush(self):
        for stream in self._streams:
            stream.flush()

    def isatty(self):
        return any(getattr(stream, "isatty", lambda: False)() for stream in self._streams)


def _install_signal_handlers(orchestrator: Orchestrator) -> None:
    def _signal_handler(signum, _frame):
        try:
            sig_name = signal.Signals(signum).name
        except ValueError:
            sig_name = str(signum)
        orchestrator.request_shutdown(reason=sig_name)

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Watch a folder and transcode every video file dropped into it with ffmpeg. "
                    "Configured through environment variables (see .env.example).",
        epilog="Example: SOURCES_DIR=./data/sources NTFY_TOPIC=my-topic watch-batch-transcode",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--log-file", help="Also write console output to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {watchbatch.__version__}")
    args = parser.parse_args(argv)

    if args.log_file:
        log_path = Path(args.log_file).expanduser().resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file_handle = open(log_path, "a", encoding="utf-8", buffering=1)
        sys.stdout = _TeeStream(sys.stdout, log_file_handle)
        sys.stderr = _TeeStream(sys.stderr, log_file_handle)
        atexit.register(log_file_handle.close)

    try:
        settings = config.load_settings()
    except StartupError as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        return 2

    logger.set_log_level(LogLevel.DEBUG if args.debug else settings.log_level)

    system_util.which_or_die(settings.ffmpeg_binary)
    if not system_util.has_binary(system_util.LSOF_BINARY):
        logger.log("startup.warning", LogLevel.WARN,
                   msg="lsof not found on PATH; open-for-write check disabled")

    orchestrator = Orchestrator(settings)
    _install_signal_handlers(orchestrator)

    try:
        orchestrator.prepare()
    except StartupError as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        return 2

    if orchestrator.run():
        logger.log("daemon.stopped", LogLevel.INFO)
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
