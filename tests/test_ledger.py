"""Tests for the CSV success ledger and duration formatting."""

import csv

import pytest

from watchbatch.ledger import Ledger, LedgerRecord, compute_ratio
from watchbatch.utils.time_util import format_hhmmss


class TestFormatHHMMSS:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00:00"),
        (59.9, "00:00:59"),
        (3661, "01:01:01"),
        (90000, "25:00:00"),
        (-5, "00:00:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_hhmmss(seconds) == expected


class TestRecord:
    def test_ratio(self):
        assert compute_ratio(250, 1000) == 0.25
        assert compute_ratio(100, 0) == 0.0

    def test_row_formatting(self):
        row = LedgerRecord("movie.mkv", 1000, 333, 125).to_row()
        assert row == ["movie.mkv", "1000", "333", "0.33", "00:02:05"]

    def test_zero_input_writes_zero_ratio(self):
        assert LedgerRecord("empty.mkv", 0, 10, 1).to_row()[3] == "0.00"


class TestLedger:
    def test_header_written_once(self, tmp_path):
        path = tmp_path / ".processed_files.csv"
        ledger = Ledger(path)
        ledger.append(LedgerRecord("a.mkv", 100, 50, 10))
        ledger.append(LedgerRecord("b.mkv", 200, 50, 20))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "filename,input_size_bytes,output_size_bytes,ratio,processing_time_HHMMSS"
        assert lines[1] == "a.mkv,100,50,0.50,00:00:10"
        assert lines[2] == "b.mkv,200,50,0.25,00:00:20"
        assert len(lines) == 3

    def test_existing_file_is_appended_not_rewritten(self, tmp_path):
        path = tmp_path / ".processed_files.csv"
        Ledger(path).append(LedgerRecord("a.mkv", 100, 50, 10))
        Ledger(path).append(LedgerRecord("b.mkv", 100, 50, 10))
        assert path.read_text(encoding="utf-8").count("input_size_bytes") == 1

    def test_filenames_with_commas_and_quotes_are_quoted(self, tmp_path):
        path = tmp_path / ".processed_files.csv"
        Ledger(path).append(LedgerRecord('Movie, "Director\'s Cut".mkv', 100, 50, 10))

        text = path.read_text(encoding="utf-8").splitlines()[1]
        assert text.startswith('"Movie, ""Director\'s Cut"".mkv",')
        with open(path, newline="", encoding="utf-8") as fh:
            rows = list(csv.reader(fh))
        assert rows[1][0] == 'Movie, "Director\'s Cut".mkv'

    def test_unwritable_location_raises(self, tmp_path):
        with pytest.raises(OSError):
            Ledger(tmp_path / "missing" / ".processed_files.csv").append(LedgerRecord("a.mkv", 1, 1, 1))

    def test_undecodable_filename_is_written_byte_for_byte(self, tmp_path):
        path = tmp_path / ".processed_files.csv"
        Ledger(path).append(LedgerRecord("bad\udcff.avi", 100, 50, 10))
        assert path.read_bytes().splitlines()[1] == b"bad\xff.avi,100,50,0.50,00:00:10"
