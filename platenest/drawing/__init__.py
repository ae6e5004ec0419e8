"""Drawing document store and cosmetic color assignment."""

from platenest.drawing.colors import ColorStrategy, FixedColor
from platenest.drawing.store import (
    DrawingStore,
    EzdxfDrawingStore,
    resolve_drawing_path,
)

__all__ = [
    "ColorStrategy",
    "DrawingStore",
    "EzdxfDrawingStore",
    "FixedColor",
    "resolve_drawing_path",
]
