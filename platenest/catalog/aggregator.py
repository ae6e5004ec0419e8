"""Merge per-job part-record files into a deduplicated part catalog.

Each job folder may hold a ``parts.csv`` with a header row and rows of
``fileName,thicknessMm,quantity``. Rows sharing a (file name, thickness)
key are merged by summing quantities; the first-seen row fixes everything
else. The merged catalog is written as ``all_parts.csv``.
"""

import csv
import io
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from platenest.catalog.records import (
    PartKey,
    UniquePart,
    parse_record_row,
    sort_catalog,
)
from platenest.config import Settings, get_settings
from platenest.errors import InputError, PersistenceError, RecordParseError
from platenest.geometry import format_thickness
from platenest.utils import LogContext, atomic_write_text, get_logger, resolve_dir

logger = get_logger("catalog.aggregator")

SUMMARY_HEADER = ["FileName", "PlateThickness_mm", "Quantity", "Folder"]


@dataclass
class AggregationResult:
    """Result of one aggregation run."""
    parts: List[UniquePart] = field(default_factory=list)
    folders_scanned: int = 0
    records_read: int = 0
    skipped_rows: int = 0
    folders_without_records: int = 0
    unreadable_files: int = 0
    summary_path: Optional[Path] = None
    summary_error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.parts)

    @property
    def total_quantity(self) -> int:
        return sum(p.total_quantity for p in self.parts)

    def by_thickness(self) -> "OrderedDict[Decimal, List[UniquePart]]":
        """Group the (already sorted) catalog by thickness key."""
        groups: "OrderedDict[Decimal, List[UniquePart]]" = OrderedDict()
        for part in self.parts:
            groups.setdefault(part.thickness_key, []).append(part)
        return groups

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "parts": [p.to_dict() for p in self.parts],
            "folders_scanned": self.folders_scanned,
            "records_read": self.records_read,
            "skipped_rows": self.skipped_rows,
            "folders_without_records": self.folders_without_records,
            "unreadable_files": self.unreadable_files,
            "summary_path": str(self.summary_path) if self.summary_path else None,
            "summary_error": self.summary_error,
        }


def discover_job_folders(main_folder: Union[str, Path]) -> List[Path]:
    """List the job sub-folders of a main folder in a stable order."""
    main = Path(main_folder)
    if not main.is_dir():
        raise InputError(f"Folder does not exist: {main}")
    folders = [p for p in main.iterdir() if p.is_dir()]
    return sorted(folders, key=lambda p: (p.name.casefold(), p.name))


class PartCatalogAggregator:
    """
    Builds the unique-part catalog from job folders.

    Holds no state between runs; every call to aggregate() starts fresh.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def aggregate(
        self,
        folders: Iterable[Union[str, Path]],
        summary_path: Optional[Union[str, Path]] = None,
    ) -> AggregationResult:
        """
        Merge the record files of the given folders.

        Args:
            folders: Job folders, in enumeration order
            summary_path: Where to write the summary catalog (skipped if None)

        Returns:
            Aggregation result with the sorted catalog and skip counters
        """
        result = AggregationResult()
        merged: Dict[PartKey, UniquePart] = {}

        for folder in folders:
            folder = Path(folder)
            result.folders_scanned += 1
            with LogContext(folder=folder.name):
                self._read_folder(folder, merged, result)

        result.parts = sort_catalog(list(merged.values()))

        if not result.parts:
            logger.info("No part records with data found in %d folder(s)", result.folders_scanned)
            return result

        logger.info(
            "Aggregated %d record(s) into %d unique part(s), %d row(s) skipped",
            result.records_read, len(result.parts), result.skipped_rows,
        )

        if summary_path is not None:
            try:
                result.summary_path = write_summary(result.parts, summary_path)
            except PersistenceError as e:
                logger.error("Summary catalog not written: %s", e)
                result.summary_error = str(e)

        return result

    def _read_folder(
        self,
        folder: Path,
        merged: Dict[PartKey, UniquePart],
        result: AggregationResult,
    ) -> None:
        record_path = folder / self.settings.record_file_name
        if not record_path.is_file():
            result.folders_without_records += 1
            return

        try:
            with open(record_path, "r", encoding="utf-8-sig", newline="") as f:
                rows = list(csv.reader(f))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.warning("Could not read %s: %s", record_path, e)
            result.unreadable_files += 1
            return

        data_rows = [(i, row) for i, row in enumerate(rows[1:], start=2) if any(c.strip() for c in row)]
        if not data_rows:
            result.folders_without_records += 1
            return

        for line_number, row in data_rows:
            try:
                record = parse_record_row(row, folder, line_number)
            except RecordParseError as e:
                logger.debug("Skipping %s line %d: %s", record_path.name, line_number, e)
                result.skipped_rows += 1
                continue

            result.records_read += 1
            existing = merged.get(record.key)
            if existing is None:
                merged[record.key] = UniquePart.from_record(record)
            else:
                existing.total_quantity += record.quantity


def render_summary(parts: Iterable[UniquePart]) -> str:
    """Render the summary catalog as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(SUMMARY_HEADER)
    for part in parts:
        writer.writerow([
            part.file_name,
            format_thickness(part.thickness_mm),
            part.total_quantity,
            part.source_folder,
        ])
    return buffer.getvalue()


def write_summary(parts: Iterable[UniquePart], path: Union[str, Path]) -> Path:
    """
    Write the summary catalog atomically.

    Raises:
        PersistenceError: if the file cannot be written
    """
    path = Path(path)
    try:
        return atomic_write_text(path, render_summary(parts))
    except OSError as e:
        raise PersistenceError(path, str(e)) from e


def load_summary(path: Union[str, Path]) -> List[UniquePart]:
    """
    Read a summary catalog back into unique parts.

    Malformed rows are skipped. The representative path is rebuilt as
    ``<catalog folder>/<Folder>/<FileName>``.
    """
    path = Path(path)
    base = path.parent
    parts: List[UniquePart] = []

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        rows = list(csv.reader(f))

    for line_number, row in enumerate(rows[1:], start=2):
        if not any(c.strip() for c in row):
            continue
        folder_name = row[3].strip() if len(row) > 3 else ""
        try:
            record = parse_record_row(row, base / folder_name, line_number)
        except RecordParseError as e:
            logger.debug("Skipping %s line %d: %s", path.name, line_number, e)
            continue
        part = UniquePart.from_record(record)
        part.source_folder = folder_name
        parts.append(part)

    return sort_catalog(parts)


class CatalogCache:
    """
    Loaded summary catalogs keyed by resolved directory.

    Callers own the instance and pass it where it is needed.
    """

    def __init__(self):
        self._entries: Dict[Path, Optional[List[UniquePart]]] = {}

    def __contains__(self, folder) -> bool:
        return resolve_dir(folder) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, folder: Union[str, Path]) -> Optional[List[UniquePart]]:
        return self._entries.get(resolve_dir(folder))

    def put(self, folder: Union[str, Path], parts: Optional[List[UniquePart]]) -> None:
        self._entries[resolve_dir(folder)] = parts

    def invalidate(self, folder: Union[str, Path]) -> None:
        self._entries.pop(resolve_dir(folder), None)

    def clear(self) -> None:
        self._entries.clear()


def load_catalog_for_folder(
    folder: Union[str, Path],
    cache: Optional[CatalogCache] = None,
    settings: Optional[Settings] = None,
) -> Optional[List[UniquePart]]:
    """
    Load the summary catalog that lives in a folder.

    Returns None when the folder has no readable catalog. Results, including
    misses, are stored in the cache when one is given.
    """
    settings = settings or get_settings()
    if cache is not None and folder in cache:
        return cache.get(folder)

    path = Path(folder) / settings.summary_file_name
    parts: Optional[List[UniquePart]] = None
    if path.is_file():
        try:
            parts = load_summary(path)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.warning("Could not load catalog %s: %s", path, e)
            parts = None

    if cache is not None:
        cache.put(folder, parts)
    return parts
