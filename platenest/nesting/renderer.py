"""Write a nested layout back into a drawing."""

from pathlib import Path
from typing import Any, Optional, Union

from platenest.config import Settings, get_settings
from platenest.drawing.store import DrawingStore
from platenest.nesting.shelf_nester import NestedLayout
from platenest.utils import get_logger

logger = get_logger("nesting.renderer")


def nested_output_path(
    source_path: Union[str, Path],
    suffix: str = "_nested",
    extension: str = ".dxf",
) -> Path:
    """``<dir>/<stem><suffix><extension>`` next to the source drawing."""
    source_path = Path(source_path)
    return source_path.with_name(f"{source_path.stem}{suffix}{extension}")


class NestedLayoutRenderer:
    """Translates a NestedLayout into block references, sheet outlines and labels."""

    def __init__(self, store: DrawingStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def render(self, drawing: Any, layout: NestedLayout) -> None:
        """Replace the drawing's model space with the nested layout."""
        self.store.clear_modelspace(drawing)

        cfg = layout.config
        for sheet in layout.sheets:
            for start, end in sheet.boundary_edges():
                self.store.add_line(drawing, start, end)
            label_x, label_y = sheet.label_anchor(cfg.sheet_label_offset)
            self.store.add_text(drawing, sheet.label, label_x, label_y, cfg.sheet_label_height)

        for placed in layout.placements:
            self.store.add_block_reference(drawing, placed.block_name, placed.insert_x, placed.insert_y)

    def write(
        self,
        source_path: Union[str, Path],
        layout: NestedLayout,
        output_path: Optional[Union[str, Path]] = None,
        drawing: Any = None,
    ) -> Path:
        """
        Render the layout into the source drawing and save it as a new file.

        Args:
            source_path: Consolidated drawing the plates came from
            layout: Completed layout
            output_path: Target file (defaults to ``<stem>_nested.dxf``)
            drawing: Already-open source drawing, to avoid reading it twice

        Returns:
            Path of the written drawing

        Raises:
            SourceOpenError: if the source cannot be opened
            PersistenceError: if the output cannot be written
        """
        if output_path is None:
            output_path = nested_output_path(
                source_path,
                suffix=self.settings.nested_suffix,
                extension=self.settings.drawing_extension,
            )

        if drawing is None:
            drawing = self.store.open(source_path)

        self.render(drawing, layout)
        written = self.store.save(drawing, output_path)
        logger.info("Wrote nested drawing %s", written)
        return written
