"""Axis-aligned bounding boxes and thickness formatting helpers."""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple

THICKNESS_QUANTUM = Decimal("0.001")

# Containment checks tolerate float noise from cursor accumulation
EPSILON = 1e-6


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned 2D bounding box."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) * 0.5

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box containing both boxes."""
        return BoundingBox(
            min_x=min(self.min_x, other.min_x),
            max_x=max(self.max_x, other.max_x),
            min_y=min(self.min_y, other.min_y),
            max_y=max(self.max_y, other.max_y),
        )

    def translated(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.min_x + dx, self.max_x + dx, self.min_y + dy, self.max_y + dy)

    def contains(self, other: "BoundingBox", tolerance: float = EPSILON) -> bool:
        """True if other lies inside this box, up to tolerance."""
        return (
            other.min_x >= self.min_x - tolerance
            and other.max_x <= self.max_x + tolerance
            and other.min_y >= self.min_y - tolerance
            and other.max_y <= self.max_y + tolerance
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.max_x, self.min_y, self.max_y)


def union_boxes(boxes: Iterable[Optional[BoundingBox]]) -> Optional[BoundingBox]:
    """Union of all non-None boxes, or None when there are none."""
    result: Optional[BoundingBox] = None
    for box in boxes:
        if box is None:
            continue
        result = box if result is None else result.union(box)
    return result


def thickness_key(thickness_mm: float) -> Decimal:
    """Round a thickness to 3 decimals, halves away from zero.

    Goes through repr() so 2.0005 keys as 2.001 rather than inheriting
    the binary float error.
    """
    if not math.isfinite(thickness_mm):
        raise ValueError(f"Thickness must be finite, got {thickness_mm!r}")
    return Decimal(repr(float(thickness_mm))).quantize(THICKNESS_QUANTUM, rounding=ROUND_HALF_UP)


def format_thickness(thickness_mm: float) -> str:
    """Up to 3 decimals with trailing zeros trimmed: 3 -> "3", 6.50 -> "6.5"."""
    text = format(thickness_key(thickness_mm), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def file_safe_thickness(thickness_mm: float) -> str:
    """Formatted thickness with '.' and ',' replaced by '_'."""
    return format_thickness(thickness_mm).replace(".", "_").replace(",", "_")
