# processors/gtfs_merge/errors.py
# -*- coding: utf-8 -*-
"""
Exception types raised by the GTFS merge engine.

Only I/O-layer failures (archive extraction, table parsing, output writes)
are raised. Identity resolution and reference rewriting never raise on
missing or malformed data; they degrade to passing the row through.
"""

from pathlib import Path
from typing import Optional, Union


class GTFSMergeError(Exception):
    """Base exception for merge-related errors."""

    def __init__(
        self,
        message: str,
        source_path: Optional[Union[str, Path]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.source_path = str(source_path) if source_path is not None else None
        self.original_error = original_error
        super().__init__(message)


class FeedLoadError(GTFSMergeError):
    """Raised when a feed archive is missing, unreadable or corrupt."""

    pass


class TableNotFoundError(GTFSMergeError):
    """Raised when a table has no rows (and therefore no header) yet."""

    pass


class MergeOutputError(GTFSMergeError):
    """Raised when the merged output cannot be written or packaged."""

    pass
