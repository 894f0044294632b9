"""Source export parser: Last.fm CSV and Spotify extended history, loose or zipped."""

import csv
import io
import logging
import zipfile
from collections.abc import Generator, Iterable
from pathlib import Path
from typing import IO

import ijson  # type: ignore[import-untyped]

from teal_shared.records.constants import (
    DEFAULT_MAX_RECORDS,
    LASTFM_CSV_PATTERN,
    SPOTIFY_EXTENDED_PATTERN,
)
from teal_shared.records.models import PlayRecord
from teal_shared.records.normalizers import normalize_lastfm_row, normalize_spotify_record

logger = logging.getLogger(__name__)

LASTFM_CSV = "lastfm_csv"
SPOTIFY_EXTENDED = "spotify_extended"

_PATTERNS = {
    LASTFM_CSV: LASTFM_CSV_PATTERN,
    SPOTIFY_EXTENDED: SPOTIFY_EXTENDED_PATTERN,
}


class ExportFormatError(Exception):
    """Raised when a path holds no recognizable listening-history export."""


def _iter_lastfm_rows(stream: IO[bytes]) -> Iterable[dict[str, str]]:
    text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
    yield from csv.DictReader(text)


def _iter_spotify_items(stream: IO[bytes]) -> Iterable[dict[str, object]]:
    yield from ijson.items(stream, "item")


class ExportParser:
    """Streaming parser for listening-history exports.

    Accepts a single export file, a directory of them, or a ZIP archive,
    detects the format from entry names and yields PlayRecord objects
    without loading whole files into memory.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._max_records = max_records

    def _entry_names(self, path: Path) -> list[str]:
        if path.is_dir():
            return sorted(str(p.relative_to(path)) for p in path.rglob("*") if p.is_file())
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path, "r") as zf:
                return sorted(zf.namelist())
        return [path.name]

    def detect_format(self, path: Path) -> str:
        """Detect the export format from the file names at ``path``.

        Returns 'spotify_extended' or 'lastfm_csv'.
        Raises ExportFormatError if no recognizable files found.
        """
        if not path.exists():
            raise FileNotFoundError(f"Export not found: {path}")

        names = self._entry_names(path)
        if any(SPOTIFY_EXTENDED_PATTERN.search(n) for n in names):
            return SPOTIFY_EXTENDED
        if any(LASTFM_CSV_PATTERN.search(n) for n in names):
            return LASTFM_CSV
        raise ExportFormatError(
            f"No recognizable export files at {path}. "
            "Expected a Last.fm *.csv, endsong_*.json or Streaming_History_Audio_*.json"
        )

    def _open_entries(self, path: Path, format_name: str) -> Generator[tuple[str, IO[bytes]]]:
        pattern = _PATTERNS[format_name]
        if path.is_dir():
            for name in self._entry_names(path):
                if pattern.search(name):
                    with (path / name).open("rb") as f:
                        yield name, f
        elif zipfile.is_zipfile(path):
            with zipfile.ZipFile(path, "r") as zf:
                for name in sorted(n for n in zf.namelist() if pattern.search(n)):
                    with zf.open(name) as f:
                        yield name, f
        else:
            with path.open("rb") as f:
                yield path.name, f

    def iter_records(self, path: Path, format_name: str | None = None) -> Generator[PlayRecord]:
        """Yield normalized records in file order, up to ``max_records``."""
        format_name = format_name or self.detect_format(path)
        if format_name == LASTFM_CSV:
            rows, normalizer = _iter_lastfm_rows, normalize_lastfm_row
        elif format_name == SPOTIFY_EXTENDED:
            rows, normalizer = _iter_spotify_items, normalize_spotify_record
        else:
            raise ValueError(f"Unknown format_name: {format_name!r}")

        total_parsed = 0
        total_skipped = 0
        for name, stream in self._open_entries(path, format_name):
            logger.info("Parsing export entry: %s", name)
            for raw in rows(stream):
                if total_parsed >= self._max_records:
                    logger.warning("Reached max records cap (%d), stopping", self._max_records)
                    return
                record = normalizer(raw)
                if record is None:
                    total_skipped += 1
                    continue
                total_parsed += 1
                yield record

        logger.info("Parsed %d records (%d entries skipped)", total_parsed, total_skipped)

    def load_records(self, path: Path) -> list[PlayRecord]:
        """Read every record at ``path``, oldest play first."""
        format_name = self.detect_format(path)
        logger.info("Detected %s export at %s", format_name, path)
        return sorted(self.iter_records(path, format_name), key=lambda r: r.played_at)
