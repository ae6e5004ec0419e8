"""Exception types raised by the aggregation and nesting pipeline.

Per-item errors (RecordParseError, SourceOpenError) are caught by the
component that owns the item and counted. Run-level errors (ConfigurationError,
FitError, NothingToNestError) abort the whole operation.
"""

from typing import Optional


class PlateNestError(Exception):
    """Base class for platenest errors."""


class InputError(PlateNestError):
    """A required input folder or file does not exist."""


class RecordParseError(PlateNestError):
    """A tabular part-record row could not be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number


class SourceOpenError(PlateNestError):
    """A drawing could not be opened or read."""

    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Cannot open drawing {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PersistenceError(PlateNestError):
    """A summary or drawing file could not be written."""

    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Cannot write {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConfigurationError(PlateNestError):
    """Sheet dimensions or spacing constants are invalid."""


class FitError(PlateNestError):
    """A plate's bounding box is larger than the usable sheet area."""

    def __init__(
        self,
        block_name: str,
        width: float,
        height: float,
        usable_width: float,
        usable_height: float,
    ):
        self.block_name = block_name
        self.width = width
        self.height = height
        self.usable_width = usable_width
        self.usable_height = usable_height
        super().__init__(
            f"Part '{block_name}' ({width:.2f} x {height:.2f} mm) does not fit inside "
            f"the usable sheet area {usable_width:.2f} x {usable_height:.2f} mm"
        )


class NothingToNestError(PlateNestError):
    """The plate catalog holds zero instances."""
