"""
Constants and default settings for the watch folder transcoder.

This module contains the default folder layout, the default ffmpeg encode and
remux settings, retry and polling timings, the temporary download suffixes that
mark a file as still in flight, and the status codes reported for each scan
cycle. A `.env` file in the working directory is loaded so deployments can
override any of these through environment variables.
"""

from dotenv import load_dotenv

load_dotenv()

# Folder defaults
DEFAULT_SOURCES_DIR = "/sources"
DEFAULT_SOURCES_PROCESSED_DIR = "/sources_processed"  # claimed files, kept here after success
DEFAULT_COMPLETED_DIR = "/completed"
DEFAULT_FAILED_DIR = "/failed"
DEFAULT_TEMP_DIR = "/tmp/watch-batch-transcode"

LEDGER_FILENAME = ".processed_files.csv"
LEDGER_HEADER = ("filename", "input_size_bytes", "output_size_bytes", "ratio", "processing_time_HHMMSS")

# FFmpeg defaults
DEFAULT_FFMPEG_BINARY = "ffmpeg"
DEFAULT_VIDEO_CODEC = "libx265"
DEFAULT_VIDEO_CRF = "24"
DEFAULT_VIDEO_PRESET = "medium"
DEFAULT_AUDIO_CODEC = "libopus"
DEFAULT_AUDIO_BITRATE = "96k"
DEFAULT_CONTAINER = "mp4"
DEFAULT_REMUX_ARGS = ("-vcodec", "copy", "-acodec", "copy", "-movflags", "+faststart")
INTERMEDIATE_EXTENSION = ".mkv"

# Processing settings
DEFAULT_MAX_RETRIES = 3  # total attempts per file
DEFAULT_RETRY_DELAY_SECONDS = 5.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_STABILITY_WINDOW_SECONDS = 2.0
SLEEP_SLICE_SECONDS = 0.25

# Exit code reported for a stage whose process could not be started
SPAWN_FAILED_EXIT_CODE = 127

DEFAULT_TEMP_SUFFIXES = (".part", ".tmp", ".temp", ".crdownload", ".download", ".partial")

# Notifications
DEFAULT_NTFY_SERVER = "https://ntfy.sh"
DEFAULT_NTFY_TIMEOUT_SECONDS = 10.0

# Scan cycle status codes
STATUS_IDLE = "IDLE"
STATUS_NOT_READY = "NOT READY"
STATUS_SKIP = "SKIP"
STATUS_OK = "OK"
STATUS_FAIL = "FAIL"
