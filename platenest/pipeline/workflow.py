"""
Pipeline workflow orchestrator.

Runs the two halves of the job end to end:
1. Combine: aggregate part records and build one drawing per thickness
2. Nest: extract plate blocks from a thickness drawing and pack them onto sheets

batch_combine_and_nest() chains both over a whole main folder.
"""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from platenest.assembly.thickness_assembler import AssemblyResult, ThicknessGroupAssembler
from platenest.catalog.aggregator import (
    AggregationResult,
    CatalogCache,
    PartCatalogAggregator,
    discover_job_folders,
    load_catalog_for_folder,
)
from platenest.config import Settings, get_settings
from platenest.drawing.colors import ColorStrategy
from platenest.drawing.store import DrawingStore, EzdxfDrawingStore
from platenest.errors import FitError, PersistenceError, SourceOpenError
from platenest.geometry import format_thickness, thickness_key
from platenest.nesting.extractor import BlockGeometryExtractor, ExtractionResult
from platenest.nesting.renderer import NestedLayoutRenderer, nested_output_path
from platenest.nesting.shelf_nester import (
    NestedLayout,
    NestingConfig,
    ProgressCallback,
    ShelfNestingEngine,
    describe_layout,
)
from platenest.utils import LogContext, atomic_write_text, ensure_dir, format_duration, get_logger

logger = get_logger("pipeline.workflow")

SEPARATOR = "-" * 70


class PipelineStage(Enum):
    """Stages of a combine or nest run."""
    IDLE = "idle"
    AGGREGATING = "aggregating"
    ASSEMBLING = "assembling"
    EXTRACTING = "extracting"
    NESTING = "nesting"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CombineResult:
    """Result of combining a main folder."""
    success: bool
    message: str
    stage: PipelineStage
    output_folder: Optional[Path] = None
    aggregation: Optional[AggregationResult] = None
    assemblies: List[AssemblyResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def summary_path(self) -> Optional[Path]:
        return self.aggregation.summary_path if self.aggregation else None

    @property
    def drawings(self) -> List[Path]:
        """Consolidated drawings that were written."""
        return [a.output_path for a in self.assemblies if a.saved]


@dataclass
class NestRunResult:
    """Result of nesting one thickness drawing."""
    success: bool
    message: str
    stage: PipelineStage
    source_path: Path
    output_path: Optional[Path] = None
    extraction: Optional[ExtractionResult] = None
    layout: Optional[NestedLayout] = None
    quantity_warnings: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def sheets_used(self) -> int:
        return self.layout.sheet_count if self.layout else 0

    @property
    def total_parts(self) -> int:
        return self.layout.total_instances if self.layout else 0

    @property
    def excluded_blocks(self) -> int:
        """Plate blocks left out for lack of usable geometry."""
        return len(self.extraction.excluded_blocks) if self.extraction else 0


@dataclass
class BatchResult:
    """Result of a combine-then-nest batch over a main folder."""
    combine: CombineResult
    runs: List[NestRunResult] = field(default_factory=list)
    summary_path: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.combine.success and all(r.success for r in self.runs)

    @property
    def failed_runs(self) -> List[NestRunResult]:
        return [r for r in self.runs if not r.success]


def _output_folder(main_folder: Path, settings: Settings) -> Path:
    return Path(settings.output_dir) if settings.output_dir else main_folder


def combine_folder(
    main_folder: Union[str, Path],
    store: Optional[DrawingStore] = None,
    settings: Optional[Settings] = None,
    color_strategy: Optional[ColorStrategy] = None,
    cache: Optional[CatalogCache] = None,
    on_stage: Optional[Callable[[PipelineStage], None]] = None,
) -> CombineResult:
    """
    Aggregate a main folder's job records and build the thickness drawings.

    Args:
        main_folder: Folder whose sub-folders are jobs
        store: Drawing backend (ezdxf by default)
        settings: Settings (global settings if None)
        color_strategy: Colors for cloned geometry
        cache: Catalog cache to invalidate once the summary is rewritten
        on_stage: Called when the run enters a new stage

    Raises:
        InputError: if the main folder does not exist
    """
    settings = settings or get_settings()
    store = store or EzdxfDrawingStore(extension=settings.drawing_extension)
    main_folder = Path(main_folder)
    start = time.time()

    def stage(s: PipelineStage) -> PipelineStage:
        if on_stage:
            on_stage(s)
        return s

    stage(PipelineStage.AGGREGATING)
    folders = discover_job_folders(main_folder)
    output_folder = ensure_dir(_output_folder(main_folder, settings))

    aggregation = PartCatalogAggregator(settings).aggregate(
        folders, summary_path=output_folder / settings.summary_file_name
    )
    if cache is not None:
        cache.invalidate(output_folder)

    if not aggregation.has_data:
        return CombineResult(
            success=False,
            message=f"No data: no {settings.record_file_name} rows found in {main_folder}",
            stage=stage(PipelineStage.FAILED),
            output_folder=output_folder,
            aggregation=aggregation,
            duration=time.time() - start,
        )

    stage(PipelineStage.ASSEMBLING)
    assembler = ThicknessGroupAssembler(store, color_strategy=color_strategy, settings=settings)
    assemblies = assembler.assemble_all(aggregation, output_folder)

    written = sum(1 for a in assemblies if a.saved)
    skipped = sum(a.skipped_parts for a in assemblies)
    duration = time.time() - start
    message = (
        f"Combined {len(aggregation.parts)} unique part(s) into {written} thickness drawing(s)"
        f" in {format_duration(duration)}"
    )
    if skipped:
        message += f", {skipped} part(s) skipped"

    return CombineResult(
        success=True,
        message=message,
        stage=stage(PipelineStage.COMPLETED),
        output_folder=output_folder,
        aggregation=aggregation,
        assemblies=assemblies,
        duration=duration,
    )


def scan_thickness_drawings(
    folder: Union[str, Path],
    settings: Optional[Settings] = None,
) -> List[Path]:
    """Consolidated thickness drawings in a folder, nested outputs excluded."""
    settings = settings or get_settings()
    folder = Path(folder)
    if not folder.is_dir():
        return []

    prefix = settings.thickness_file_prefix.casefold()
    extension = settings.drawing_extension.casefold()
    nested = settings.nested_suffix.casefold()

    found = []
    for path in folder.iterdir():
        if not path.is_file() or path.suffix.casefold() != extension:
            continue
        stem = path.stem.casefold()
        if not stem.startswith(prefix):
            continue
        if nested in stem or "_nest_" in stem:
            continue
        found.append(path)
    return sorted(found, key=lambda p: (p.name.casefold(), p.name))


def thickness_from_file_name(path: Union[str, Path], prefix: str = "thickness_") -> Optional[float]:
    """Thickness encoded in a drawing name: thickness_6_5.dxf -> 6.5."""
    stem = Path(path).stem
    if not stem.casefold().startswith(prefix.casefold()):
        return None
    token = stem[len(prefix):]
    if not re.fullmatch(r"[0-9]+(_[0-9]+)?", token):
        return None
    return float(token.replace("_", "."))


def _check_catalog_quantities(
    path: Path,
    extraction: ExtractionResult,
    settings: Settings,
    cache: Optional[CatalogCache],
) -> List[str]:
    thickness = thickness_from_file_name(path, settings.thickness_file_prefix)
    if thickness is None:
        return []
    catalog = load_catalog_for_folder(path.parent, cache=cache, settings=settings)
    if not catalog:
        return []

    key = thickness_key(thickness)
    parts = [p for p in catalog if p.thickness_key == key]
    if not parts:
        return []

    # Zero-quantity rows still yield one copy
    expected = sum(max(1, p.total_quantity) for p in parts)
    decoded = extraction.total_instances
    if decoded == expected:
        return []

    warning = (
        f"{path.name}: blocks declare {decoded} part(s) but {settings.summary_file_name}"
        f" lists {expected} for {format_thickness(thickness)} mm"
    )
    logger.warning(warning)
    return [warning]


def nest_drawing(
    path: Union[str, Path],
    sheet_width: Optional[float] = None,
    sheet_height: Optional[float] = None,
    store: Optional[DrawingStore] = None,
    settings: Optional[Settings] = None,
    cache: Optional[CatalogCache] = None,
    progress: Optional[ProgressCallback] = None,
    config: Optional[NestingConfig] = None,
) -> NestRunResult:
    """
    Nest the plate blocks of one consolidated drawing.

    Writes ``<stem>_nested.dxf`` next to the source. No file is written
    when the layout cannot be completed.

    Raises:
        SourceOpenError: if the drawing cannot be opened
        ConfigurationError: if the sheet configuration is invalid
        FitError: if a plate is larger than the usable sheet area
        PersistenceError: if the nested drawing cannot be written
    """
    settings = settings or get_settings()
    store = store or EzdxfDrawingStore(extension=settings.drawing_extension)
    config = config or NestingConfig.from_settings(settings, sheet_width, sheet_height)
    path = Path(path)
    start = time.time()

    with LogContext(drawing=path.name):
        config.validate()
        drawing = store.open(path)

        extraction = BlockGeometryExtractor(store, settings).extract(drawing)
        if not extraction.plates:
            message = f"No plate blocks ({settings.plate_block_prefix}*) found in {path.name}"
            if extraction.excluded_blocks:
                message += f", {len(extraction.excluded_blocks)} excluded without usable geometry"
            return NestRunResult(
                success=False,
                message=message,
                stage=PipelineStage.FAILED,
                source_path=path,
                extraction=extraction,
                duration=time.time() - start,
            )

        warnings = _check_catalog_quantities(path, extraction, settings, cache)

        layout = ShelfNestingEngine(config, progress=progress).nest(extraction.plates)
        logger.debug("Layout:\n%s", describe_layout(layout))

        output_path = NestedLayoutRenderer(store, settings).write(
            path,
            layout,
            output_path=nested_output_path(path, settings.nested_suffix, settings.drawing_extension),
            drawing=drawing,
        )

    duration = time.time() - start
    message = (
        f"Nested {layout.total_instances} part(s) on {layout.sheet_count} sheet(s)"
        f" in {format_duration(duration)}"
    )
    if extraction.excluded_blocks:
        message += f", {len(extraction.excluded_blocks)} block(s) without usable geometry excluded"

    return NestRunResult(
        success=True,
        message=message,
        stage=PipelineStage.COMPLETED,
        source_path=path,
        output_path=output_path,
        extraction=extraction,
        layout=layout,
        quantity_warnings=warnings,
        duration=duration,
    )


def render_batch_summary(
    folder: Path,
    runs: List[NestRunResult],
    config: NestingConfig,
    combine: Optional[CombineResult] = None,
) -> str:
    """Text of the batch summary file, skip and failure counters included."""
    lines = [
        "Batch nesting summary",
        f"Folder: {folder}",
        f"Tasks: {len(runs)}",
        f"Sheet: {config.sheet_width:g} x {config.sheet_height:g} mm",
    ]
    if combine is not None and combine.aggregation is not None:
        agg = combine.aggregation
        lines.append(f"Record rows skipped: {agg.skipped_rows}")
        lines.append(f"Unreadable record files: {agg.unreadable_files}")
        lines.append(f"Parts skipped while combining: {sum(a.skipped_parts for a in combine.assemblies)}")
    lines.append(f"Blocks excluded: {sum(r.excluded_blocks for r in runs)}")
    lines.append(f"Failed drawings: {sum(1 for r in runs if not r.success)}")
    lines.append(SEPARATOR)
    for run in runs:
        lines.append(run.source_path.name)
        if run.success:
            lines.append(f"  Sheets used: {run.sheets_used}, Parts: {run.total_parts}")
            lines.append(f"  Output: {run.output_path.name}")
            if run.excluded_blocks:
                lines.append(f"  Blocks excluded: {run.excluded_blocks}")
            for warning in run.quantity_warnings:
                lines.append(f"  Warning: {warning}")
        else:
            lines.append(f"  Failed: {run.message}")
        lines.append(SEPARATOR)
    return "\n".join(lines) + "\n"


def batch_combine_and_nest(
    main_folder: Union[str, Path],
    sheet_width: Optional[float] = None,
    sheet_height: Optional[float] = None,
    store: Optional[DrawingStore] = None,
    settings: Optional[Settings] = None,
    color_strategy: Optional[ColorStrategy] = None,
    cache: Optional[CatalogCache] = None,
    on_drawing: Optional[Callable[[Path, int, int], None]] = None,
) -> BatchResult:
    """
    Combine a main folder, then nest every thickness drawing it produced.

    Each drawing is an independent nesting run: a drawing that fails is
    recorded in the batch result and the batch moves on to the next one.

    Args:
        on_drawing: Called as on_drawing(path, index, total) before each drawing

    Raises:
        InputError: if the main folder does not exist
        ConfigurationError: if the sheet configuration is invalid
    """
    settings = settings or get_settings()
    store = store or EzdxfDrawingStore(extension=settings.drawing_extension)
    cache = cache if cache is not None else CatalogCache()
    config = NestingConfig.from_settings(settings, sheet_width, sheet_height)
    config.validate()

    combine = combine_folder(
        main_folder,
        store=store,
        settings=settings,
        color_strategy=color_strategy,
        cache=cache,
    )
    batch = BatchResult(combine=combine)
    if not combine.success:
        return batch

    folder = combine.output_folder
    cache.invalidate(folder)

    drawings = scan_thickness_drawings(folder, settings)
    if not drawings:
        logger.warning("No thickness drawings found in %s after combining", folder)
        return batch

    for index, path in enumerate(drawings, start=1):
        if on_drawing:
            on_drawing(path, index, len(drawings))
        try:
            run = nest_drawing(path, store=store, settings=settings, cache=cache, config=config)
        except (FitError, SourceOpenError, PersistenceError) as e:
            logger.error("Nesting %s failed: %s", path.name, e)
            run = NestRunResult(
                success=False,
                message=str(e),
                stage=PipelineStage.FAILED,
                source_path=path,
            )
        batch.runs.append(run)

    try:
        batch.summary_path = atomic_write_text(
            folder / settings.batch_summary_file_name,
            render_batch_summary(folder, batch.runs, config, combine),
        )
    except OSError as e:
        raise PersistenceError(folder / settings.batch_summary_file_name, str(e)) from e

    logger.info(
        "Batch finished: %d drawing(s), %d failed",
        len(batch.runs), len(batch.failed_runs),
    )
    return batch

