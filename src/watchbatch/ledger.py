"""
Append-only CSV ledger of successfully transcoded files.

The ledger lives as a hidden file in the completed folder. It gets its header
row the first time a record is written and is only ever appended to after that.
Filenames are quoted (with inner quotes doubled) only when they contain a comma
or a quote character.
"""
import csv
from dataclasses import dataclass
from pathlib import Path

from watchbatch.utils import logger, time_util
from watchbatch.utils.constants import LEDGER_HEADER
from watchbatch.utils.logger import LogLevel


def compute_ratio(output_size: int, input_size: int) -> float:
    """Output/input size ratio; 0 when the input size is 0."""
    if input_size <= 0:
        return 0.0
    return output_size / input_size


@dataclass(frozen=True)
class LedgerRecord:
    filename: str
    input_size_bytes: int
    output_size_bytes: int
    elapsed_seconds: float

    @property
    def ratio(self) -> float:
        return compute_ratio(self.output_size_bytes, self.input_size_bytes)

    def to_row(self) -> list:
        return [
            self.filename,
            str(self.input_size_bytes),
            str(self.output_size_bytes),
            f"{self.ratio:.2f}",
            time_util.format_hhmmss(self.elapsed_seconds),
        ]


class Ledger:
    """Appends one row per successful job to the CSV file at `path`."""

    def __init__(self, path: Path):
        self.path = path

    def append(self, record: LedgerRecord) -> None:
        """Append `record`, writing the header first if the file is new or empty. Raises OSError."""
        # Filenames come from the OS; undecodable bytes are written back as-is.
        with open(self.path, "a", newline="", encoding="utf-8", errors="surrogateescape") as fh:
            writer = csv.writer(fh, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
            if fh.tell() == 0:
                logger.log("ledger.created", LogLevel.INFO, path=str(self.path))
                writer.writerow(LEDGER_HEADER)
            writer.writerow(record.to_row())
        logger.log("ledger.appended", LogLevel.INFO, file=record.filename, ratio=f"{record.ratio:.2f}",
                   time=time_util.format_hhmmss(record.elapsed_seconds))
