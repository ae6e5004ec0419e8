"""Nesting of plate blocks onto stock sheets.

Extracts plate blocks from consolidated drawings, shelf-packs every copy
onto fixed-size sheets and writes the nested drawing.
"""

from platenest.nesting.extractor import (
    BlockGeometryExtractor,
    ExtractionResult,
    PlateDefinition,
    decode_quantity,
    is_plate_block,
)
from platenest.nesting.renderer import NestedLayoutRenderer, nested_output_path
from platenest.nesting.shelf_nester import (
    NestedLayout,
    NestingConfig,
    PlacedInstance,
    ShelfNestingEngine,
    Sheet,
    describe_layout,
    nest_plates,
)

__all__ = [
    "BlockGeometryExtractor",
    "ExtractionResult",
    "NestedLayout",
    "NestedLayoutRenderer",
    "NestingConfig",
    "PlacedInstance",
    "PlateDefinition",
    "ShelfNestingEngine",
    "Sheet",
    "decode_quantity",
    "describe_layout",
    "is_plate_block",
    "nest_plates",
    "nested_output_path",
]
