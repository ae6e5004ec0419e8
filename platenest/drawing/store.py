"""Drawing document store.

The pipeline never parses drawing files itself. It talks to a DrawingStore,
which can open and save drawings, enumerate named blocks and their entities,
clone entities into a new block, and measure an entity's bounding box.

EzdxfDrawingStore is the DXF-backed implementation.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import ezdxf
from ezdxf import bbox as ezdxf_bbox
from ezdxf.addons import Importer
from ezdxf.lldxf.const import DXFError

from platenest.errors import PersistenceError, SourceOpenError
from platenest.geometry import BoundingBox
from platenest.utils import get_logger

logger = get_logger("drawing.store")

Point = Tuple[float, float]

SHEET_LAYER = "SHEETS"
LABEL_LAYER = "LABELS"


class DrawingStore(ABC):
    """Capabilities the pipeline needs from a drawing backend."""

    @abstractmethod
    def open(self, path: Union[str, Path]) -> Any:
        """Open a drawing. Raises SourceOpenError."""

    @abstractmethod
    def new(self) -> Any:
        """Create an empty drawing."""

    @abstractmethod
    def modelspace_entities(self, drawing: Any) -> List[Any]:
        """Entities in the drawing's model space."""

    @abstractmethod
    def block_names(self, drawing: Any) -> List[str]:
        """Names of all block definitions, in document order."""

    @abstractmethod
    def block_entities(self, drawing: Any, name: str) -> List[Any]:
        """Entities of a named block, in block-local coordinates."""

    @abstractmethod
    def clone_into_block(
        self,
        target: Any,
        source: Any,
        entities: Sequence[Any],
        block_name: str,
        color: Optional[int] = None,
    ) -> int:
        """Copy entities from source into a new block of target; returns the clone count."""

    @abstractmethod
    def delete_block(self, drawing: Any, name: str) -> None:
        """Remove a block definition."""

    @abstractmethod
    def bounding_box(self, entity: Any) -> Optional[BoundingBox]:
        """Axis-aligned bounding box of an entity, or None if it has none."""

    @abstractmethod
    def clear_modelspace(self, drawing: Any) -> None:
        """Delete every model-space entity."""

    @abstractmethod
    def add_block_reference(self, drawing: Any, block_name: str, x: float, y: float) -> None:
        """Insert a block into model space at (x, y)."""

    @abstractmethod
    def add_line(self, drawing: Any, start: Point, end: Point) -> None:
        """Add a line to model space."""

    @abstractmethod
    def add_text(self, drawing: Any, text: str, x: float, y: float, height: float) -> None:
        """Add single-line text with its baseline-left corner at (x, y)."""

    @abstractmethod
    def save(self, drawing: Any, path: Union[str, Path]) -> Path:
        """Write the drawing in one step. Raises PersistenceError."""


def resolve_drawing_path(path: Union[str, Path], extension: str = ".dxf") -> Path:
    """
    Map a recorded drawing path onto a readable file.

    Jobs often record the native ``.dwg`` name while exporting a DXF beside
    it; in that case the DXF sibling is used.
    """
    path = Path(path)
    if path.exists():
        return path
    sibling = path.with_suffix(extension)
    if sibling.exists():
        return sibling
    return path


class EzdxfDrawingStore(DrawingStore):
    """DrawingStore backed by ezdxf."""

    def __init__(self, dxf_version: str = "R2010", extension: str = ".dxf"):
        self.dxf_version = dxf_version
        self.extension = extension

    def open(self, path):
        resolved = resolve_drawing_path(path, self.extension)
        if not resolved.is_file():
            raise SourceOpenError(path, "file not found")
        try:
            return ezdxf.readfile(str(resolved))
        except (OSError, DXFError, ValueError) as e:
            raise SourceOpenError(resolved, str(e)) from e

    def new(self):
        doc = ezdxf.new(self.dxf_version)
        doc.units = ezdxf.units.MM
        return doc

    def modelspace_entities(self, drawing) -> List[Any]:
        return list(drawing.modelspace())

    def block_names(self, drawing) -> List[str]:
        return [block.name for block in drawing.blocks]

    def block_entities(self, drawing, name: str) -> List[Any]:
        block = drawing.blocks.get(name)
        if block is None:
            return []
        return list(block)

    def clone_into_block(self, target, source, entities, block_name, color=None) -> int:
        block = target.blocks.new(name=block_name)
        try:
            importer = Importer(source, target)
            importer.import_entities(entities, target_layout=block)
            importer.finalize()
        except DXFError as e:
            target.blocks.delete_block(block_name, safe=False)
            raise SourceOpenError(block_name, f"cannot copy entities: {e}") from e

        count = 0
        for entity in block:
            if color is not None and entity.dxf.is_supported("color"):
                entity.dxf.color = color
            count += 1
        return count

    def delete_block(self, drawing, name: str) -> None:
        drawing.blocks.delete_block(name, safe=False)

    def bounding_box(self, entity) -> Optional[BoundingBox]:
        try:
            extents = ezdxf_bbox.extents([entity])
        except (DXFError, ValueError, TypeError, ArithmeticError) as e:
            logger.debug("No bounding box for %s: %s", entity.dxftype(), e)
            return None
        if not extents.has_data:
            return None
        return BoundingBox(
            min_x=float(extents.extmin.x),
            max_x=float(extents.extmax.x),
            min_y=float(extents.extmin.y),
            max_y=float(extents.extmax.y),
        )

    def clear_modelspace(self, drawing) -> None:
        drawing.modelspace().delete_all_entities()

    def add_block_reference(self, drawing, block_name, x, y) -> None:
        drawing.modelspace().add_blockref(block_name, (x, y))

    def add_line(self, drawing, start, end) -> None:
        drawing.modelspace().add_line(start, end, dxfattribs={"layer": SHEET_LAYER})

    def add_text(self, drawing, text, x, y, height) -> None:
        drawing.modelspace().add_text(
            text,
            height=height,
            dxfattribs={"layer": LABEL_LAYER},
        ).set_placement((x, y))

    def save(self, drawing, path) -> Path:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=path.suffix, dir=path.parent)
            os.close(fd)
        except OSError as e:
            raise PersistenceError(path, str(e)) from e

        try:
            drawing.saveas(tmp_name)
            os.replace(tmp_name, path)
        except (OSError, DXFError) as e:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise PersistenceError(path, str(e)) from e

        logger.debug("Saved drawing %s", path)
        return path
