"""Consolidate the parts of one thickness into a single drawing.

Each catalog part becomes a named block (``P_<name>_Q<qty>``) inserted in
its own column, with the plate thickness and quantity written underneath.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Collection, List, Optional, Union

from platenest.catalog.aggregator import AggregationResult
from platenest.catalog.records import UniquePart
from platenest.config import Settings, get_settings
from platenest.drawing.colors import ColorStrategy
from platenest.drawing.store import DrawingStore
from platenest.errors import PersistenceError, SourceOpenError
from platenest.geometry import file_safe_thickness, format_thickness
from platenest.nesting.extractor import block_bounding_box
from platenest.utils import LogContext, ensure_dir, get_logger, safe_token

logger = get_logger("assembly.thickness")


def thickness_file_name(
    thickness_mm: Union[float, Decimal],
    prefix: str = "thickness_",
    extension: str = ".dxf",
) -> str:
    """File name of the consolidated drawing for a thickness (6.5 -> thickness_6_5.dxf)."""
    return f"{prefix}{file_safe_thickness(float(thickness_mm))}{extension}"


def make_plate_block_name(
    file_name: str,
    quantity: int,
    taken: Collection[str] = (),
    prefix: str = "P_",
) -> str:
    """
    Block name for a part: ``P_<safe stem>_Q<quantity>``.

    Collisions get ``_<n>`` before the quantity suffix so ``_Q<n>`` stays
    at the end of the name.
    """
    stem = Path(file_name.strip()).stem
    token = safe_token(stem)
    qty = max(1, quantity)

    name = f"{prefix}{token}_Q{qty}"
    suffix = 1
    while name in taken:
        name = f"{prefix}{token}_{suffix}_Q{qty}"
        suffix += 1
    return name


def estimate_text_width(text: str, text_height: float, factor: float = 0.6) -> float:
    """Rough single-line text width; 0 for empty text or non-positive height."""
    if not text or text_height <= 0:
        return 0.0
    return len(text) * text_height * factor


@dataclass
class AssembledPlate:
    """Where one part ended up in the consolidated drawing."""
    block_name: str
    file_name: str
    quantity: int
    color: Optional[int]
    insert_x: float
    insert_y: float
    column_x: float
    column_width: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "block_name": self.block_name,
            "file_name": self.file_name,
            "quantity": self.quantity,
            "color": self.color,
            "insert_x": self.insert_x,
            "insert_y": self.insert_y,
            "column_x": self.column_x,
            "column_width": self.column_width,
        }


@dataclass
class AssemblyResult:
    """Outcome of consolidating one thickness group."""
    thickness_mm: float
    output_path: Optional[Path] = None
    plates: List[AssembledPlate] = field(default_factory=list)
    skipped_parts: int = 0
    skipped_files: List[str] = field(default_factory=list)
    save_error: Optional[str] = None

    @property
    def placed_parts(self) -> int:
        return len(self.plates)

    @property
    def thickness_text(self) -> str:
        return format_thickness(self.thickness_mm)

    @property
    def saved(self) -> bool:
        return self.output_path is not None and self.save_error is None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "thickness_mm": self.thickness_mm,
            "output_path": str(self.output_path) if self.output_path else None,
            "plates": [p.to_dict() for p in self.plates],
            "skipped_parts": self.skipped_parts,
            "skipped_files": list(self.skipped_files),
            "save_error": self.save_error,
        }


class ThicknessGroupAssembler:
    """
    Builds one consolidated drawing per thickness.

    Args:
        store: Drawing backend used to open sources and write the result
        color_strategy: Color source for cloned geometry (seeded from settings if None)
        settings: Layout constants and file naming
    """

    def __init__(
        self,
        store: DrawingStore,
        color_strategy: Optional[ColorStrategy] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.color_strategy = color_strategy or ColorStrategy(self.settings.color_seed)

    def assemble(
        self,
        thickness_key: Union[float, Decimal],
        parts: List[UniquePart],
        output_folder: Union[str, Path],
    ) -> AssemblyResult:
        """
        Consolidate every part of one thickness into ``thickness_<t>.dxf``.

        Parts are laid out left to right in the order given. Parts whose
        source cannot be opened or has no geometry are skipped; nothing is
        written if no part could be placed.
        """
        thickness_mm = float(thickness_key)
        result = AssemblyResult(thickness_mm=thickness_mm)

        with LogContext(thickness=format_thickness(thickness_mm)):
            drawing = self.store.new()
            cursor_x = 0.0

            for part in parts:
                plate = self._add_part(drawing, part, cursor_x)
                if plate is None:
                    result.skipped_parts += 1
                    result.skipped_files.append(part.file_name)
                    continue
                result.plates.append(plate)
                cursor_x += plate.column_width + self.settings.column_margin

            if not result.plates:
                logger.warning("No parts could be placed; no drawing written")
                return result

            target = Path(ensure_dir(output_folder)) / thickness_file_name(
                thickness_mm,
                prefix=self.settings.thickness_file_prefix,
                extension=self.settings.drawing_extension,
            )
            try:
                result.output_path = self.store.save(drawing, target)
            except PersistenceError as e:
                logger.error("Consolidated drawing not written: %s", e)
                result.save_error = str(e)
                return result

            logger.info(
                "Consolidated %d part(s) into %s (%d skipped)",
                result.placed_parts, result.output_path.name, result.skipped_parts,
            )

        return result

    def assemble_all(
        self,
        aggregation: AggregationResult,
        output_folder: Union[str, Path],
    ) -> List[AssemblyResult]:
        """Assemble every thickness group in ascending thickness order."""
        return [
            self.assemble(key, parts, output_folder)
            for key, parts in aggregation.by_thickness().items()
        ]

    def _add_part(self, drawing: Any, part: UniquePart, column_x: float) -> Optional[AssembledPlate]:
        try:
            source = self.store.open(part.representative_source_path)
        except SourceOpenError as e:
            logger.warning("Skipping %s: %s", part.file_name, e)
            return None

        entities = self.store.modelspace_entities(source)
        if not entities:
            logger.warning("Skipping %s: model space is empty", part.file_name)
            return None

        block_name = make_plate_block_name(
            part.file_name,
            part.total_quantity,
            taken=self.store.block_names(drawing),
            prefix=self.settings.plate_block_prefix,
        )
        color = self.color_strategy.next_color()
        try:
            cloned = self.store.clone_into_block(drawing, source, entities, block_name, color=color)
        except SourceOpenError as e:
            logger.warning("Skipping %s: %s", part.file_name, e)
            return None

        box = block_bounding_box(self.store, drawing, block_name) if cloned else None
        if box is None:
            logger.warning("Skipping %s: no measurable geometry", part.file_name)
            self.store.delete_block(drawing, block_name)
            return None

        cfg = self.settings
        plate_label = f"Plate: {part.thickness_text} mm"
        qty_label = f"Qty: {part.total_quantity}"
        text_width = max(
            estimate_text_width(plate_label, cfg.text_height, cfg.text_width_factor),
            estimate_text_width(qty_label, cfg.text_height, cfg.text_width_factor),
        )
        column_width = max(box.width, text_width)
        center_x = column_x + column_width / 2.0

        # Block centered in its column, bottom edge on Y = 0
        insert_x = center_x - box.center_x
        insert_y = -box.min_y
        self.store.add_block_reference(drawing, block_name, insert_x, insert_y)

        for row, label in enumerate((plate_label, qty_label), start=1):
            width = estimate_text_width(label, cfg.text_height, cfg.text_width_factor)
            y = -row * (cfg.text_height + cfg.label_gap)
            self.store.add_text(drawing, label, center_x - width / 2.0, y, cfg.text_height)

        logger.debug("Placed %s as %s (%d entities)", part.file_name, block_name, cloned)
        return AssembledPlate(
            block_name=block_name,
            file_name=part.file_name,
            quantity=part.total_quantity,
            color=color,
            insert_x=insert_x,
            insert_y=insert_y,
            column_x=column_x,
            column_width=column_width,
        )
