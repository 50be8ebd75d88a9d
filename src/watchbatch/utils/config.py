"""
Environment-driven settings for the watch folder transcoder.

All options are read once at startup into an immutable `Settings` object; there
is no hot reload. Invalid numeric values are logged and replaced by their
defaults instead of aborting the daemon.
"""
import math
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from watchbatch.errors import StartupError
from watchbatch.utils import constants, logger
from watchbatch.utils.logger import LogLevel


def get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """Get an integer from an environment variable with validation.

    Args:
        name: Environment variable name
        default: Default value if env var is missing or invalid
        min_val: Optional minimum value (inclusive)
        max_val: Optional maximum value (inclusive)
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Parsed integer value, or default if parsing fails or value is out of range
    """
    env = os.environ if env is None else env
    value = env.get(name)
    if value is None or value.strip() == "":
        return default

    try:
        result = int(value)
    except ValueError:
        logger.log("config.invalid", LogLevel.WARN, name=name, value=value, default=default)
        return default

    if min_val is not None and result < min_val:
        logger.log("config.below_minimum", LogLevel.WARN, name=name, value=result, minimum=min_val, default=default)
        return default
    if max_val is not None and result > max_val:
        logger.log("config.above_maximum", LogLevel.WARN, name=name, value=result, maximum=max_val, default=default)
        return default

    return result


def get_float_env(
    name: str,
    default: float,
    min_val: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> float:
    """Get a float from an environment variable, rejecting inf/nan and values below `min_val`."""
    env = os.environ if env is None else env
    value = env.get(name)
    if value is None or value.strip() == "":
        return default

    try:
        result = float(value)
    except ValueError:
        logger.log("config.invalid", LogLevel.WARN, name=name, value=value, default=default)
        return default

    if math.isinf(result) or math.isnan(result):
        logger.log("config.invalid", LogLevel.WARN, name=name, value=value, default=default)
        return default

    if min_val is not None and result < min_val:
        logger.log("config.below_minimum", LogLevel.WARN, name=name, value=result, minimum=min_val, default=default)
        return default

    return result


def get_flag_env(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """A flag is enabled by setting the variable to any non-empty value, including "0"."""
    env = os.environ if env is None else env
    return bool(env.get(name))


def get_bool_env(name: str, default: bool, env: Optional[Mapping[str, str]] = None) -> bool:
    """Parse true/false style values; anything unrecognised keeps the default."""
    env = os.environ if env is None else env
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.log("config.invalid", LogLevel.WARN, name=name, value=value, default=default)
    return default


def parse_suffixes(raw: Optional[str]) -> Tuple[str, ...]:
    """Parse a comma separated suffix list, adding the leading dot where missing."""
    if raw is None or raw.strip() == "":
        return constants.DEFAULT_TEMP_SUFFIXES
    suffixes = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        suffixes.append(item if item.startswith(".") else f".{item}")
    return tuple(suffixes)


def _split_override(name: str, raw: str) -> Tuple[str, ...]:
    try:
        return tuple(shlex.split(raw))
    except ValueError as e:
        raise StartupError(f"Cannot parse {name}: {e}") from e


def build_encode_args(
    video_codec: str,
    video_crf: str,
    video_preset: str,
    audio_codec: str,
    audio_bitrate: str,
    override: Optional[str] = None,
) -> Tuple[str, ...]:
    """Resolve the encode argument set: the raw override if given, else the individual settings."""
    if override:
        return _split_override("OVERRIDE_ENCODE_ARGS", override)
    return (
        "-c:v", video_codec,
        "-crf", video_crf,
        "-preset", video_preset,
        "-c:a", audio_codec,
        "-b:a", audio_bitrate,
    )


def build_remux_args(override: Optional[str] = None) -> Tuple[str, ...]:
    """Resolve the remux argument set: stream copy with fast-start unless overridden."""
    if override:
        return _split_override("OVERRIDE_REMUX_ARGS", override)
    return constants.DEFAULT_REMUX_ARGS


@dataclass(frozen=True)
class Settings:
    """Static configuration for the lifetime of the process."""

    sources_dir: Path
    processed_dir: Path
    completed_dir: Path
    failed_dir: Path
    temp_dir: Path
    encode_args: Tuple[str, ...]
    remux_args: Tuple[str, ...]
    container: str = constants.DEFAULT_CONTAINER
    ffmpeg_binary: str = constants.DEFAULT_FFMPEG_BINARY
    max_retries: int = constants.DEFAULT_MAX_RETRIES
    retry_delay: float = constants.DEFAULT_RETRY_DELAY_SECONDS
    poll_interval: float = constants.DEFAULT_POLL_INTERVAL_SECONDS
    stability_window: float = constants.DEFAULT_STABILITY_WINDOW_SECONDS
    temp_suffixes: Tuple[str, ...] = constants.DEFAULT_TEMP_SUFFIXES
    ntfy_server: str = constants.DEFAULT_NTFY_SERVER
    ntfy_topic: Optional[str] = None
    ntfy_timeout: float = constants.DEFAULT_NTFY_TIMEOUT_SECONDS
    delete_after: bool = False
    recover_on_startup: bool = True
    log_level: LogLevel = LogLevel.INFO

    @property
    def ledger_path(self) -> Path:
        return self.completed_dir / constants.LEDGER_FILENAME

    @property
    def folders(self) -> Tuple[Path, ...]:
        return self.sources_dir, self.processed_dir, self.completed_dir, self.failed_dir, self.temp_dir


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    env = os.environ if env is None else env

    def _get(name: str, default: str) -> str:
        value = env.get(name)
        return value if value else default

    container = _get("FINAL_VIDEO_CONTAINER", constants.DEFAULT_CONTAINER).lstrip(".")

    return Settings(
        sources_dir=Path(_get("SOURCES_DIR", constants.DEFAULT_SOURCES_DIR)),
        processed_dir=Path(_get("SOURCES_PROCESSED_DIR", constants.DEFAULT_SOURCES_PROCESSED_DIR)),
        completed_dir=Path(_get("COMPLETED_DIR", constants.DEFAULT_COMPLETED_DIR)),
        failed_dir=Path(_get("FAILED_DIR", constants.DEFAULT_FAILED_DIR)),
        temp_dir=Path(_get("TEMP_DIR", constants.DEFAULT_TEMP_DIR)),
        encode_args=build_encode_args(
            _get("VIDEO_CODEC", constants.DEFAULT_VIDEO_CODEC),
            _get("VIDEO_CRF", constants.DEFAULT_VIDEO_CRF),
            _get("VIDEO_PRESET", constants.DEFAULT_VIDEO_PRESET),
            _get("AUDIO_CODEC", constants.DEFAULT_AUDIO_CODEC),
            _get("AUDIO_BITRATE", constants.DEFAULT_AUDIO_BITRATE),
            override=env.get("OVERRIDE_ENCODE_ARGS"),
        ),
        remux_args=build_remux_args(env.get("OVERRIDE_REMUX_ARGS")),
        container=container,
        ffmpeg_binary=_get("FFMPEG_BINARY", constants.DEFAULT_FFMPEG_BINARY),
        max_retries=get_int_env("MAX_RETRIES", constants.DEFAULT_MAX_RETRIES, min_val=1, env=env),
        retry_delay=get_float_env("RETRY_DELAY_SECONDS", constants.DEFAULT_RETRY_DELAY_SECONDS, min_val=0, env=env),
        poll_interval=get_float_env("POLL_INTERVAL_SECONDS", constants.DEFAULT_POLL_INTERVAL_SECONDS,
                                    min_val=0, env=env),
        stability_window=get_float_env("STABILITY_WINDOW_SECONDS", constants.DEFAULT_STABILITY_WINDOW_SECONDS,
                                       min_val=0, env=env),
        temp_suffixes=parse_suffixes(env.get("TEMP_SUFFIXES")),
        ntfy_server=_get("NTFY_SERVER", constants.DEFAULT_NTFY_SERVER).rstrip("/"),
        ntfy_topic=env.get("NTFY_TOPIC") or None,
        ntfy_timeout=get_float_env("NTFY_TIMEOUT_SECONDS", constants.DEFAULT_NTFY_TIMEOUT_SECONDS,
                                   min_val=0, env=env),
        delete_after=get_flag_env("DELETE_AFTER", env=env),
        recover_on_startup=get_bool_env("RECOVER_ON_STARTUP", True, env=env),
        log_level=logger.parse_log_level(env.get("LOG_LEVEL")),
    )
