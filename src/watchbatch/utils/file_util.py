"""
Filesystem helpers for moving files between the watch folders.

Every relocation between folders is a single atomic rename, never a copy
followed by a delete, so an interrupted move cannot leave a file in two
places. The helpers log their own failures and report them through their
return values; callers decide whether a failure needs escalating.
"""
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from watchbatch.utils import logger
from watchbatch.utils.logger import LogLevel


def create_folders(folders: Iterable[Path]) -> None:
    """Create each folder (and parents) if missing. Raises OSError on failure."""
    for folder in folders:
        folder.mkdir(parents=True, exist_ok=True)


def get_file_size(path: Path) -> Optional[int]:
    """Return the size of `path` in bytes, or None if it cannot be read."""
    try:
        return path.stat().st_size
    except OSError:
        return None


def list_files(folder: Path) -> List[Path]:
    """List regular files directly inside `folder`, in lexical order."""
    try:
        entries = list(folder.iterdir())
    except OSError as e:
        logger.log("fs.list_failed", LogLevel.ERROR, path=str(folder), error=str(e))
        return []
    return sorted((p for p in entries if p.is_file()), key=lambda p: p.name)


def free_path(path: Path) -> Path:
    """Return `path`, or `<stem> (N)<suffix>` beside it with the lowest N not yet taken."""
    if not path.exists():
        return path
    n = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({n}){path.suffix}")
        if not candidate.exists():
            return candidate
        n += 1


def move_file(src: Path, dst: Path) -> bool:
    """
    Atomically rename `src` to `dst`.

    Refuses to replace an existing destination. Returns True when the file was
    moved and False otherwise; failures are logged.
    """
    if dst.exists():
        logger.log("fs.move_failed", LogLevel.ERROR,
                   src=str(src), dst=str(dst), error="destination already exists")
        return False
    try:
        os.rename(src, dst)
    except OSError as e:
        logger.log("fs.move_failed", LogLevel.ERROR, src=str(src), dst=str(dst), error=str(e))
        return False
    logger.log("fs.moved", LogLevel.DEBUG, src=str(src), dst=str(dst))
    return True


def remove_file(path: Path) -> bool:
    """Delete `path` if present. Returns False only if an existing file could not be removed."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.log("fs.remove_failed", LogLevel.ERROR, path=str(path), error=str(e))
        return False
    return True


def clear_directory(folder: Path) -> int:
    """Remove everything inside `folder`, keeping the folder itself. Returns entries removed."""
    removed = 0
    try:
        entries = list(folder.iterdir())
    except FileNotFoundError:
        return 0
    except OSError as e:
        logger.log("fs.clear_failed", LogLevel.ERROR, path=str(folder), error=str(e))
        return 0

    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        except OSError as e:
            logger.log("fs.remove_failed", LogLevel.ERROR, path=str(entry), error=str(e))
    return removed
