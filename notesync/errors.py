"""
Error taxonomy and error logging for notesync.

Only BackendUnavailable is recoverable: the gateway retries against the
local store and the enrichment engine substitutes its offline algorithms.
AccessDenied and NotFound always reach the caller.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class NoteSyncError(Exception):
    """Base class for notesync errors."""


class AccessDenied(NoteSyncError):
    """The requesting identity lacks permission for the note."""

    def __init__(self, note_id: str, identity: str):
        super().__init__(f"Access denied to note {note_id!r} for {identity!r}")
        self.note_id = note_id
        self.identity = identity


class NotFound(NoteSyncError):
    """The note id does not resolve for this identity."""

    def __init__(self, note_id: str):
        super().__init__(f"Note not found: {note_id!r}")
        self.note_id = note_id


class BackendUnavailable(NoteSyncError):
    """A remote store or enrichment backend call failed (network, auth, rate limit, bad response)."""


class DimensionMismatch(NoteSyncError, ValueError):
    """Similarity requested between vectors of different lengths."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


def _error_log_path(store_path: Optional[Path] = None) -> Path:
    """Resolve error log path: explicit store path, then NOTESYNC_STORE_PATH, then the default."""
    store = store_path or os.environ.get("NOTESYNC_STORE_PATH")
    if store:
        return Path(store) / "notesync-errors.log"
    return Path.home() / ".notesync" / "notesync-errors.log"


def log_exception(exc: Exception, context: str = "", store_path: Optional[Path] = None) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        store_path: Store directory to log into, when known

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(store_path)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Error log is best effort
    return log_path
