"""
worker-inline: Worker Classifier Interface

Decides which files are worker modules and which files are scanned as
potential owners of worker references. Two strategies:

  - NamingConventionClassifier: a file is a worker iff its name ends with a
    configured marker (".worker.js", ...). Known before any scan; worker
    files are never scanned as owners.
  - ReferenceDrivenClassifier: a file is a worker iff some scanned file
    points at it. Classification is a by-product of the scan pass.

The rest of the pipeline only asks the questions defined on
BaseWorkerClassifier and never branches on the concrete strategy.

Usage:
    classifier = build_classifier("naming", markers=[".worker.js"])
    if classifier.is_scan_target(path): ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Set, Tuple

from worker_inline.utils.constants import (
    SOURCE_EXTENSIONS,
    STRATEGY_NAMING,
    STRATEGY_REFERENCE,
    SUPPORTED_STRATEGIES,
    WORKER_MARKERS,
)

logger = logging.getLogger(__name__)


class BaseWorkerClassifier(ABC):
    """Abstract base class for worker classification strategies."""

    name: str = ""

    def __init__(self, source_extensions: Optional[Iterable[str]] = None) -> None:
        self.source_extensions: Tuple[str, ...] = tuple(source_extensions or SOURCE_EXTENSIONS)
        self._workers: Set[Path] = set()

    def has_source_extension(self, path: Path) -> bool:
        return path.name.endswith(self.source_extensions)

    @abstractmethod
    def is_scan_target(self, path: Path) -> bool:
        """Whether the file should be scanned for worker references."""
        ...

    @abstractmethod
    def accepts(self, literal_path: str) -> bool:
        """Whether a matched reference with this literal path is kept."""
        ...

    @abstractmethod
    def is_worker(self, path: Path) -> bool:
        """Whether the resolved path is a worker module."""
        ...

    def observe(self, resolved_path: Path) -> None:
        """Record a worker module discovered through a reference."""
        self._workers.add(resolved_path)

    @property
    def workers(self) -> FrozenSet[Path]:
        """Worker modules known so far."""
        return frozenset(self._workers)


class NamingConventionClassifier(BaseWorkerClassifier):
    """
    Worker modules are declared by filename suffix.

    Args:
        markers: Filename suffixes that mark a worker module.
        source_extensions: Extensions of files scanned as owners.
    """

    name = STRATEGY_NAMING

    def __init__(
        self,
        markers: Optional[Iterable[str]] = None,
        source_extensions: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(source_extensions)
        self.markers: Tuple[str, ...] = tuple(markers or WORKER_MARKERS)
        if not self.markers:
            raise ValueError("Naming-convention strategy needs at least one worker marker")

    def _has_marker(self, name: str) -> bool:
        return name.endswith(self.markers)

    def is_scan_target(self, path: Path) -> bool:
        return self.has_source_extension(path) and not self._has_marker(path.name)

    def accepts(self, literal_path: str) -> bool:
        return self._has_marker(literal_path)

    def is_worker(self, path: Path) -> bool:
        return self._has_marker(path.name)


class ReferenceDrivenClassifier(BaseWorkerClassifier):
    """Worker modules are whatever the reference scan points at."""

    name = STRATEGY_REFERENCE

    def is_scan_target(self, path: Path) -> bool:
        return self.has_source_extension(path)

    def accepts(self, literal_path: str) -> bool:
        return True

    def is_worker(self, path: Path) -> bool:
        return path in self._workers


def build_classifier(
    strategy: str,
    markers: Optional[Iterable[str]] = None,
    source_extensions: Optional[Iterable[str]] = None,
) -> BaseWorkerClassifier:
    """
    Create the classifier for a configured strategy.

    Args:
        strategy: "reference" or "naming".
        markers: Worker filename suffixes (naming strategy only).
        source_extensions: Extensions of files scanned as owners.

    Raises:
        ValueError: On an unknown strategy.
    """
    strategy = strategy.lower()
    if strategy == STRATEGY_NAMING:
        return NamingConventionClassifier(markers=markers, source_extensions=source_extensions)
    if strategy == STRATEGY_REFERENCE:
        return ReferenceDrivenClassifier(source_extensions=source_extensions)
    raise ValueError(f"Unknown strategy {strategy!r}; choose from {SUPPORTED_STRATEGIES}")
