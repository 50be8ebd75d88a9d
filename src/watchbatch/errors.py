"""Exceptions raised by the watch folder transcoder."""


class WatchBatchError(Exception):
    """Base exception for watch-batch-transcode errors."""

    pass


class StartupError(WatchBatchError):
    """Raised when the daemon cannot start (e.g. a folder cannot be created)."""

    pass


class ShutdownRequested(Exception):
    """Raised at a checkpoint once a termination signal has been received."""

    pass
