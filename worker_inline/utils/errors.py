"""
worker-inline: Exceptions

CollectionError and ScanError are fatal and abort a run before any file is
written. Unreadable worker modules are not exceptions at this level; the
registry records them and the rewriter leaves the reference alone.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class WorkerInlineError(Exception):
    """Base class for all worker-inline errors."""


class CollectionError(WorkerInlineError):
    """The source root (or a directory under it) could not be listed."""

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"Cannot traverse {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RegistryError(WorkerInlineError):
    """The worker registry was used out of phase (e.g. registered after sealing)."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class ScanError(WorkerInlineError):
    """A collected source file could not be read during the scan phase."""

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}" if reason else f"Cannot read {path}")
