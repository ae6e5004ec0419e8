"""Part records and the deduplicated unique-part catalog entries."""

import math
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from platenest.errors import RecordParseError
from platenest.geometry import format_thickness, thickness_key

PartKey = Tuple[str, Decimal]


def normalize_file_name(file_name: str) -> str:
    """Case-insensitive identity of a part file name."""
    return file_name.strip().casefold()


def part_key(file_name: str, thickness_mm: float) -> PartKey:
    """Dedup key: normalized file name plus thickness rounded to 3 decimals."""
    return (normalize_file_name(file_name), thickness_key(thickness_mm))


@dataclass(frozen=True)
class PartRecord:
    """One parsed row of a job's part-record file."""
    file_name: str
    thickness_mm: float
    quantity: int
    source_folder: str
    source_path: Path

    @property
    def key(self) -> PartKey:
        return part_key(self.file_name, self.thickness_mm)


@dataclass
class UniquePart:
    """A (file name, thickness) identity with its quantity summed over all jobs."""
    file_name: str
    thickness_mm: float
    total_quantity: int
    representative_source_path: Path
    source_folder: str

    @property
    def key(self) -> PartKey:
        return part_key(self.file_name, self.thickness_mm)

    @property
    def thickness_key(self) -> Decimal:
        return thickness_key(self.thickness_mm)

    @property
    def thickness_text(self) -> str:
        return format_thickness(self.thickness_mm)

    @classmethod
    def from_record(cls, record: PartRecord) -> "UniquePart":
        return cls(
            file_name=record.file_name,
            thickness_mm=record.thickness_mm,
            total_quantity=record.quantity,
            representative_source_path=record.source_path,
            source_folder=record.source_folder,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "file_name": self.file_name,
            "thickness_mm": self.thickness_mm,
            "total_quantity": self.total_quantity,
            "representative_source_path": str(self.representative_source_path),
            "source_folder": self.source_folder,
        }


def catalog_sort_key(part: UniquePart) -> Tuple[Decimal, str, str]:
    """Ascending thickness, then case-insensitive file name."""
    return (part.thickness_key, part.file_name.casefold(), part.file_name)


def parse_record_row(
    fields: Sequence[str],
    folder: Path,
    line_number: Optional[int] = None,
) -> PartRecord:
    """
    Parse one data row of ``fileName,thicknessMm,quantity``.

    Columns past the third are ignored. Thickness is a culture-invariant
    decimal; quantity must be a non-negative integer.

    Raises:
        RecordParseError: if the row is incomplete or a value is invalid
    """
    if len(fields) < 3:
        raise RecordParseError(f"Expected 3 columns, got {len(fields)}", line_number)

    file_name = fields[0].strip()
    if not file_name:
        raise RecordParseError("Empty file name", line_number)

    thickness_text = fields[1].strip()
    try:
        if "_" in thickness_text:
            raise ValueError(thickness_text)
        thickness = float(thickness_text)
    except ValueError:
        raise RecordParseError(f"Invalid thickness {thickness_text!r}", line_number) from None
    if not math.isfinite(thickness):
        raise RecordParseError(f"Invalid thickness {thickness_text!r}", line_number)

    quantity_text = fields[2].strip()
    try:
        if "_" in quantity_text:
            raise ValueError(quantity_text)
        quantity = int(quantity_text)
    except ValueError:
        raise RecordParseError(f"Invalid quantity {quantity_text!r}", line_number) from None
    if quantity < 0:
        raise RecordParseError(f"Negative quantity {quantity}", line_number)

    return PartRecord(
        file_name=file_name,
        thickness_mm=thickness,
        quantity=quantity,
        source_folder=folder.name,
        source_path=folder / file_name,
    )


def sort_catalog(parts: List[UniquePart]) -> List[UniquePart]:
    """Return the catalog in its canonical order."""
    return sorted(parts, key=catalog_sort_key)
