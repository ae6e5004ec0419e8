"""Per-thickness consolidation of part drawings into named plate blocks."""

from platenest.assembly.thickness_assembler import (
    AssembledPlate,
    AssemblyResult,
    ThicknessGroupAssembler,
    estimate_text_width,
    make_plate_block_name,
    thickness_file_name,
)

__all__ = [
    "AssembledPlate",
    "AssemblyResult",
    "ThicknessGroupAssembler",
    "estimate_text_width",
    "make_plate_block_name",
    "thickness_file_name",
]
