"""
A watch folder daemon that transcodes video files with ffmpeg.

Files dropped into the sources folder are checked for readiness, claimed into
the processed folder, encoded to a scratch intermediate and remuxed into the
completed folder. Files that fail every attempt are moved to the failed folder.
Every success is recorded in a CSV ledger and outcomes can be pushed through
ntfy.

The package is organized into:
- intake: Candidate scanning and readiness detection.
- transcode: ffmpeg command building and the encode/remux pipeline.
- orchestrator: The scan, claim, process and classify loop with shutdown handling.
- ledger, notify: Success ledger and push notifications.
- utils: Constants, settings, logging and filesystem helpers.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
