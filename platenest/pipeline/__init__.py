"""End-to-end combine and nest workflows."""

from platenest.pipeline.workflow import (
    BatchResult,
    CombineResult,
    NestRunResult,
    PipelineStage,
    batch_combine_and_nest,
    combine_folder,
    nest_drawing,
    render_batch_summary,
    scan_thickness_drawings,
    thickness_from_file_name,
)

__all__ = [
    "BatchResult",
    "CombineResult",
    "NestRunResult",
    "PipelineStage",
    "batch_combine_and_nest",
    "combine_folder",
    "nest_drawing",
    "render_batch_summary",
    "scan_thickness_drawings",
    "thickness_from_file_name",
]
