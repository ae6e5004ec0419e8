"""Shelf nesting of plate bounding boxes onto fixed-size stock sheets.

Plates are expanded into one instance per copy, sorted tallest first, and
placed left to right in rows ("shelves"). A row that is full wraps to the
next one; a sheet that is full opens a new sheet. Every plate is checked
against the usable sheet area before anything is placed, so a run either
places every instance or places none.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from platenest.config import Settings, get_settings
from platenest.errors import ConfigurationError, FitError, NothingToNestError
from platenest.geometry import EPSILON, BoundingBox
from platenest.nesting.extractor import PlateDefinition
from platenest.utils import get_logger

logger = get_logger("nesting.shelf_nester")

ProgressCallback = Callable[[int, int], None]
Segment = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass
class NestingConfig:
    """Sheet size and spacing for one nesting run (mm)."""
    sheet_width: float = 3000.0
    sheet_height: float = 1500.0

    sheet_margin: float = 5.0  # Clearance from sheet edges
    part_gap: float = 5.0  # Spacing between adjacent plates
    sheet_gap: float = 50.0  # Visual spacing between sheet rectangles

    sheet_label_height: float = 15.0
    sheet_label_offset: float = 20.0

    @property
    def usable_width(self) -> float:
        return self.sheet_width - 2 * self.sheet_margin

    @property
    def usable_height(self) -> float:
        return self.sheet_height - 2 * self.sheet_margin

    def validate(self) -> None:
        """Raise ConfigurationError for non-positive sheets or negative spacing."""
        if self.sheet_width <= 0 or self.sheet_height <= 0:
            raise ConfigurationError(
                f"Sheet width and height must be positive, got "
                f"{self.sheet_width} x {self.sheet_height} mm"
            )
        if self.sheet_margin < 0 or self.part_gap < 0 or self.sheet_gap < 0:
            raise ConfigurationError("Sheet margin, part gap and sheet gap must not be negative")
        if self.usable_width <= 0 or self.usable_height <= 0:
            raise ConfigurationError(
                f"Sheet margin {self.sheet_margin} mm leaves no usable area on a "
                f"{self.sheet_width} x {self.sheet_height} mm sheet"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "sheet_width": self.sheet_width,
            "sheet_height": self.sheet_height,
            "sheet_margin": self.sheet_margin,
            "part_gap": self.part_gap,
            "sheet_gap": self.sheet_gap,
            "sheet_label_height": self.sheet_label_height,
            "sheet_label_offset": self.sheet_label_offset,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NestingConfig":
        """Create from dictionary."""
        return cls(
            sheet_width=data.get("sheet_width", 3000.0),
            sheet_height=data.get("sheet_height", 1500.0),
            sheet_margin=data.get("sheet_margin", 5.0),
            part_gap=data.get("part_gap", 5.0),
            sheet_gap=data.get("sheet_gap", 50.0),
            sheet_label_height=data.get("sheet_label_height", 15.0),
            sheet_label_offset=data.get("sheet_label_offset", 20.0),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        sheet_width: Optional[float] = None,
        sheet_height: Optional[float] = None,
    ) -> "NestingConfig":
        """Create from application settings, with optional sheet size override."""
        settings = settings or get_settings()
        return cls(
            sheet_width=settings.default_sheet_width if sheet_width is None else sheet_width,
            sheet_height=settings.default_sheet_height if sheet_height is None else sheet_height,
            sheet_margin=settings.sheet_margin,
            part_gap=settings.part_gap,
            sheet_gap=settings.sheet_gap,
            sheet_label_height=settings.sheet_label_height,
            sheet_label_offset=settings.sheet_label_offset,
        )


@dataclass(frozen=True)
class NestingInstance:
    """One physical copy of a plate waiting to be placed."""
    plate: PlateDefinition

    @property
    def width(self) -> float:
        return self.plate.width

    @property
    def height(self) -> float:
        return self.plate.height


@dataclass(frozen=True)
class Sheet:
    """A finished stock sheet in the layout."""
    index: int  # 1-based
    origin_x: float
    origin_y: float
    width: float
    height: float
    margin: float

    @property
    def usable_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.height - 2 * self.margin

    @property
    def usable_area(self) -> BoundingBox:
        """Usable rectangle relative to the sheet origin."""
        return BoundingBox(
            min_x=self.margin,
            max_x=self.width - self.margin,
            min_y=self.margin,
            max_y=self.height - self.margin,
        )

    @property
    def label(self) -> str:
        return f"SHEET {self.index}"

    def label_anchor(self, offset: float) -> Tuple[float, float]:
        """Label position near the top-left usable corner, in world coordinates."""
        return (self.origin_x + self.margin, self.origin_y + self.height - offset)

    def boundary_edges(self) -> List[Segment]:
        """Bottom, right, top and left edges in world coordinates."""
        x0, y0 = self.origin_x, self.origin_y
        x1, y1 = x0 + self.width, y0 + self.height
        return [
            ((x0, y0), (x1, y0)),
            ((x1, y0), (x1, y1)),
            ((x1, y1), (x0, y1)),
            ((x0, y1), (x0, y0)),
        ]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "index": self.index,
            "origin_x": self.origin_x,
            "origin_y": self.origin_y,
            "width": self.width,
            "height": self.height,
            "margin": self.margin,
        }


@dataclass
class _SheetCursor:
    """Mutable shelf state of the sheet currently being filled."""
    index: int
    origin_x: float
    origin_y: float
    cursor_x: float
    cursor_y: float
    row_height: float = 0.0

    def freeze(self, config: NestingConfig) -> Sheet:
        return Sheet(
            index=self.index,
            origin_x=self.origin_x,
            origin_y=self.origin_y,
            width=config.sheet_width,
            height=config.sheet_height,
            margin=config.sheet_margin,
        )


@dataclass(frozen=True)
class PlacedInstance:
    """A committed placement of one plate copy."""
    block_name: str
    sheet_index: int
    x: float  # Bounding-box min corner, relative to the sheet origin
    y: float
    insert_x: float  # World insertion point of the block
    insert_y: float
    width: float
    height: float

    @property
    def local_bbox(self) -> BoundingBox:
        """Footprint relative to the sheet origin."""
        return BoundingBox(self.x, self.x + self.width, self.y, self.y + self.height)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "block_name": self.block_name,
            "sheet_index": self.sheet_index,
            "x": self.x,
            "y": self.y,
            "insert_x": self.insert_x,
            "insert_y": self.insert_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class NestedLayout:
    """Sheets and placements produced by one nesting run."""
    config: NestingConfig
    sheets: List[Sheet] = field(default_factory=list)
    placements: List[PlacedInstance] = field(default_factory=list)

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def total_instances(self) -> int:
        return len(self.placements)

    @property
    def sheet_width(self) -> float:
        return self.config.sheet_width

    @property
    def sheet_height(self) -> float:
        return self.config.sheet_height

    @property
    def utilization(self) -> float:
        """Placed plate area as a percentage of the usable area of all sheets."""
        if not self.sheets:
            return 0.0
        placed_area = sum(p.width * p.height for p in self.placements)
        usable_area = self.sheet_count * self.config.usable_width * self.config.usable_height
        return min(100.0, placed_area / usable_area * 100)

    def placements_on(self, sheet_index: int) -> List[PlacedInstance]:
        return [p for p in self.placements if p.sheet_index == sheet_index]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "config": self.config.to_dict(),
            "sheet_count": self.sheet_count,
            "total_instances": self.total_instances,
            "utilization": self.utilization,
            "sheets": [s.to_dict() for s in self.sheets],
            "placements": [p.to_dict() for p in self.placements],
        }


def expand_instances(plates: Iterable[PlateDefinition]) -> List[NestingInstance]:
    """One instance per copy, sorted by height then width, both descending."""
    instances = [NestingInstance(plate) for plate in plates for _ in range(plate.quantity)]
    # Stable sort keeps catalog order among equal-sized plates
    instances.sort(key=lambda inst: (-inst.height, -inst.width))
    return instances


class ShelfNestingEngine:
    """
    Greedy multi-sheet shelf packer.

    Usage:
        engine = ShelfNestingEngine(NestingConfig(sheet_width=3000, sheet_height=1500))
        layout = engine.nest(plates)
    """

    def __init__(self, config: Optional[NestingConfig] = None, progress: Optional[ProgressCallback] = None):
        """
        Initialize the engine.

        Args:
            config: Sheet size and spacing
            progress: Called as progress(placed, total) after each placement
        """
        self.config = config or NestingConfig()
        self.progress = progress

    def validate(self, plates: Sequence[PlateDefinition]) -> int:
        """
        Check the configuration and every plate before placing anything.

        Returns:
            Total number of instances to place

        Raises:
            ConfigurationError: for invalid sheet dimensions or spacing
            FitError: for the first plate larger than the usable area
            NothingToNestError: when the quantities sum to zero
        """
        self.config.validate()

        margin = self.config.sheet_margin
        for plate in plates:
            if not (self._fits_width(margin, plate.width) and self._fits_height(margin, plate.height)):
                raise self._fit_error(plate)

        total = sum(max(0, plate.quantity) for plate in plates)
        if total <= 0:
            raise NothingToNestError("Nothing to nest: all plates have zero quantity")
        return total

    def nest(self, plates: Sequence[PlateDefinition]) -> NestedLayout:
        """
        Place every copy of every plate.

        Args:
            plates: Plate catalog with sizes and quantities

        Returns:
            The completed layout
        """
        plates = list(plates)
        total = self.validate(plates)
        instances = expand_instances(plates)

        cfg = self.config
        layout = NestedLayout(config=cfg)
        cursors: List[_SheetCursor] = []
        sheet = self._new_sheet(cursors)

        for inst in instances:
            while True:
                if self._fits_width(sheet.cursor_x, inst.width):
                    layout.placements.append(self._place(sheet, inst))
                    sheet.cursor_x += inst.width + cfg.part_gap
                    sheet.row_height = max(sheet.row_height, inst.height)

                    if self.progress:
                        self.progress(len(layout.placements), total)
                    break

                # Row is full: wrap to the next shelf
                sheet.cursor_x = cfg.sheet_margin
                sheet.cursor_y += sheet.row_height + cfg.part_gap
                sheet.row_height = 0.0

                if not self._fits_height(sheet.cursor_y, inst.height):
                    sheet = self._new_sheet(cursors)
                    # An empty sheet that cannot take the plate never will
                    if not self._fits_width(sheet.cursor_x, inst.width):
                        raise self._fit_error(inst.plate)

        layout.sheets = [c.freeze(cfg) for c in cursors]
        logger.info(
            "Nested %d plate(s) on %d sheet(s) of %.0f x %.0f mm (%.1f%% used)",
            layout.total_instances, layout.sheet_count,
            cfg.sheet_width, cfg.sheet_height, layout.utilization,
        )
        return layout

    def _fits_width(self, x: float, width: float) -> bool:
        return x + width <= self.config.sheet_width - self.config.sheet_margin + EPSILON

    def _fits_height(self, y: float, height: float) -> bool:
        return y + height <= self.config.sheet_height - self.config.sheet_margin + EPSILON

    def _fit_error(self, plate: PlateDefinition) -> FitError:
        cfg = self.config
        return FitError(plate.block_name, plate.width, plate.height, cfg.usable_width, cfg.usable_height)

    def _new_sheet(self, cursors: List[_SheetCursor]) -> _SheetCursor:
        cfg = self.config
        cursor = _SheetCursor(
            index=len(cursors) + 1,
            origin_x=len(cursors) * (cfg.sheet_width + cfg.sheet_gap),
            origin_y=0.0,
            cursor_x=cfg.sheet_margin,
            cursor_y=cfg.sheet_margin,
        )
        cursors.append(cursor)
        logger.debug("Opened sheet %d", cursor.index)
        return cursor

    @staticmethod
    def _place(sheet: _SheetCursor, inst: NestingInstance) -> PlacedInstance:
        # Offset by the block's min corner so the bounding box, not the
        # block origin, lands on the cursor
        return PlacedInstance(
            block_name=inst.plate.block_name,
            sheet_index=sheet.index,
            x=sheet.cursor_x,
            y=sheet.cursor_y,
            insert_x=sheet.origin_x + sheet.cursor_x - inst.plate.min_x,
            insert_y=sheet.origin_y + sheet.cursor_y - inst.plate.min_y,
            width=inst.width,
            height=inst.height,
        )


def describe_layout(layout: NestedLayout) -> str:
    """Plain-text description of a layout."""
    cfg = layout.config
    lines = [
        f"Sheet: {cfg.sheet_width:g} x {cfg.sheet_height:g} mm "
        f"(margin {cfg.sheet_margin:g}, gap {cfg.part_gap:g})",
        f"Sheets used: {layout.sheet_count}",
        f"Total parts: {layout.total_instances}",
        f"Utilization: {layout.utilization:.1f}%",
    ]
    for sheet in layout.sheets:
        placed = layout.placements_on(sheet.index)
        lines.append(f"  {sheet.label}: {len(placed)} part(s)")
    return "\n".join(lines)


# Convenience functions
def nest_plates(
    plates: Sequence[PlateDefinition],
    sheet_width: float,
    sheet_height: float,
    progress: Optional[ProgressCallback] = None,
    **overrides,
) -> NestedLayout:
    """
    Nest plates on sheets of the given size.

    Args:
        plates: Plate catalog
        sheet_width: Sheet width (mm)
        sheet_height: Sheet height (mm)
        progress: Optional progress(placed, total) callback
        **overrides: Other NestingConfig fields

    Returns:
        Nested layout
    """
    config = NestingConfig(sheet_width=sheet_width, sheet_height=sheet_height, **overrides)
    return ShelfNestingEngine(config, progress=progress).nest(plates)
