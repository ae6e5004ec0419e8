"""Shared utilities for platenest."""

import json
import logging
import os
import tempfile
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from rich.console import Console
from rich.logging import RichHandler

# Rich console for pretty output
console = Console()

# Log records go to stderr so command output stays parseable
log_console = Console(stderr=True)

# Run-scoped fields attached to every log record
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


class LogContext:
    """Context manager for adding run context (folder, thickness, drawing) to logs."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        current = _log_context.get().copy()
        current.update(self.context)
        self._token = _log_context.set(current)
        return self

    def __exit__(self, *args):
        if self._token:
            _log_context.reset(self._token)


def current_context() -> Dict[str, Any]:
    """Return a copy of the active log context."""
    return _log_context.get().copy()


class _ContextFilter(logging.Filter):
    """Copies the active LogContext onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = _log_context.get()
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for machine-readable runs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class _TextContextFormatter(logging.Formatter):
    """Appends the log context to the message for the rich handler."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            context_str = " ".join(f"{k}={v}" for k, v in context.items())
            message += f" ({context_str})"
        return message


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """Set up logging with a Rich handler, or JSON lines when fmt is "json"."""
    root = logging.getLogger("platenest")
    root.setLevel(level.upper())

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if fmt == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(console=log_console, rich_tracebacks=True, show_path=False)
        handler.setFormatter(_TextContextFormatter("%(message)s", datefmt="[%X]"))

    handler.addFilter(_ContextFilter())
    root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module."""
    return logging.getLogger(f"platenest.{name}")


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists and return the Path."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write_text(path: Union[str, Path], content: str, encoding: str = "utf-8") -> Path:
    """Write text to a temporary sibling, then move it over the target."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    return path


def safe_token(name: str, fallback: str = "Part") -> str:
    """Replace every non-alphanumeric character with an underscore."""
    safe = "".join(c if c.isalnum() else "_" for c in name)
    return safe or fallback


def format_duration(seconds: float) -> str:
    """Format duration in seconds as human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes:.0f}m {secs:.0f}s"


def resolve_dir(folder: Union[str, Path]) -> Path:
    """Absolute, normalized form of a directory path, used as a cache key."""
    try:
        return Path(folder).resolve()
    except OSError:
        return Path(os.path.abspath(folder))

