"""Extract nestable plate blocks from a consolidated drawing.

A plate block is named ``<prefix><token>`` (prefix ``P_`` by default) and
may end in ``_Q<n>`` to declare how many copies to cut.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from platenest.config import Settings, get_settings
from platenest.drawing.store import DrawingStore
from platenest.geometry import BoundingBox, union_boxes
from platenest.utils import get_logger

logger = get_logger("nesting.extractor")

QUANTITY_SUFFIX = re.compile(r"_[Qq]([0-9]+)\Z")


def decode_quantity(block_name: str) -> int:
    """Quantity from a trailing ``_Q<n>``; 1 when absent, unparsable or not positive."""
    match = QUANTITY_SUFFIX.search(block_name or "")
    if match is None:
        return 1
    quantity = int(match.group(1))
    return quantity if quantity > 0 else 1


def is_plate_block(block_name: str, prefix: str = "P_") -> bool:
    """True for named plate blocks; special blocks (``*Model_Space``) never match."""
    if not block_name or block_name.startswith("*"):
        return False
    return block_name[:len(prefix)].upper() == prefix.upper()


@dataclass(frozen=True)
class PlateDefinition:
    """A nestable plate: its block, bounding box and copy count."""
    block_name: str
    bbox: BoundingBox
    quantity: int = 1

    @property
    def width(self) -> float:
        return self.bbox.width

    @property
    def height(self) -> float:
        return self.bbox.height

    @property
    def min_x(self) -> float:
        return self.bbox.min_x

    @property
    def min_y(self) -> float:
        return self.bbox.min_y

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "block_name": self.block_name,
            "width": self.width,
            "height": self.height,
            "min_x": self.min_x,
            "min_y": self.min_y,
            "quantity": self.quantity,
        }


@dataclass
class ExtractionResult:
    """Plates found in a drawing plus the blocks that were left out."""
    plates: List[PlateDefinition] = field(default_factory=list)
    excluded_blocks: List[str] = field(default_factory=list)
    ignored_blocks: int = 0

    @property
    def total_instances(self) -> int:
        return sum(p.quantity for p in self.plates)


def block_bounding_box(store: DrawingStore, drawing: Any, block_name: str) -> Optional[BoundingBox]:
    """Union of the boxes of a block's entities; entities without one are skipped."""
    return union_boxes(store.bounding_box(e) for e in store.block_entities(drawing, block_name))


class BlockGeometryExtractor:
    """Turns the plate blocks of a drawing into PlateDefinitions."""

    def __init__(self, store: DrawingStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def extract(self, drawing: Any) -> ExtractionResult:
        result = ExtractionResult()
        prefix = self.settings.plate_block_prefix

        for name in self.store.block_names(drawing):
            if not is_plate_block(name, prefix):
                result.ignored_blocks += 1
                continue

            box = block_bounding_box(self.store, drawing, name)
            if box is None:
                logger.debug("Block %s has no measurable geometry", name)
                result.excluded_blocks.append(name)
                continue

            if box.width <= 0.0 or box.height <= 0.0:
                logger.debug("Block %s is degenerate (%.3f x %.3f)", name, box.width, box.height)
                result.excluded_blocks.append(name)
                continue

            result.plates.append(PlateDefinition(
                block_name=name,
                bbox=box,
                quantity=decode_quantity(name),
            ))

        if result.excluded_blocks:
            logger.warning("Excluded %d plate block(s) without usable geometry", len(result.excluded_blocks))

        return result
