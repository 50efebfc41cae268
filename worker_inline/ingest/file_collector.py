"""
worker-inline: File Collector

Enumerates every file under a source root using an explicit work queue
rather than recursion, so deep trees cannot exhaust the call stack.
Directories are traversed and never yielded. No extension filtering is done
here; that belongs to the classifier.

Usage:
    from worker_inline.ingest.file_collector import FileCollector
    files = FileCollector("src").collect()
"""

from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path
from typing import Deque, Iterable, Iterator, List, Optional, Set, Union

from worker_inline.utils.errors import CollectionError

logger = logging.getLogger(__name__)


def absolute_path(path: Union[str, Path]) -> Path:
    """Absolute, normalised path without resolving symlinks."""
    return Path(os.path.abspath(os.fspath(path)))


class FileCollector:
    """
    Iterative directory walker.

    Args:
        root: Source root directory.
        ignore_dirs: Directory names to prune anywhere in the tree.
    """

    def __init__(
        self,
        root: Union[str, Path],
        ignore_dirs: Optional[Iterable[str]] = None,
    ) -> None:
        self.root = absolute_path(root)
        self.ignore_dirs: Set[str] = set(ignore_dirs or ())
        self._dirs_visited = 0

    def iter_files(self) -> Iterator[Path]:
        """
        Lazily yield every file path under the root.

        The returned iterator is finite and single-use.

        Raises:
            CollectionError: If the root or any directory under it cannot be listed.
        """
        if not self.root.exists():
            raise CollectionError(self.root, "does not exist")
        if not self.root.is_dir():
            raise CollectionError(self.root, "not a directory")

        pending: Deque[Path] = deque([self.root])
        while pending:
            directory = pending.popleft()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                raise CollectionError(directory, e.strerror or str(e)) from e

            self._dirs_visited += 1
            for entry in entries:
                # Symlinked directories are not followed (no cycles)
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in self.ignore_dirs:
                        logger.debug("Skipping ignored directory: %s", entry.path)
                        continue
                    pending.append(Path(entry.path))
                elif entry.is_file():
                    yield Path(entry.path)

    def collect(self) -> List[Path]:
        """
        Collect all files under the root.

        Returns:
            Sorted list of absolute file paths.

        Raises:
            CollectionError: If the tree cannot be traversed.
        """
        files = sorted(self.iter_files())
        logger.debug(
            "Collected %d files from %s (%d directories)",
            len(files), self.root, self._dirs_visited,
        )
        return files

    @property
    def dirs_visited(self) -> int:
        return self._dirs_visited
