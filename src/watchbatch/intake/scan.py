"""Candidate selection from the intake folder."""
from pathlib import Path
from typing import Optional

from watchbatch.utils import file_util


def next_candidate(sources_dir: Path, after: Optional[str] = None) -> Optional[Path]:
    """
    Pick the next file to check, in lexical order.

    `after` is the name of the last candidate that was not ready; the scan
    resumes past it (wrapping around) so one file that never becomes ready does
    not keep every other file waiting.
    """
    files = file_util.list_files(sources_dir)
    if not files:
        return None
    if after is not None:
        for path in files:
            if path.name > after:
                return path
    return files[0]
