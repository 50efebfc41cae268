"""
worker-inline: Worker Registry

Maps each resolved worker path to that worker's source text. Built in two
steps: references are registered during the scan (duplicates coalesce),
then populate() reads every distinct path exactly once. Workers that
themselves spawn workers carry their own references, resolved against the
worker's directory; load_pending() can be called repeatedly to follow them
before seal(). After sealing the registry is read-only, so the rewrite
phase needs no locking.

A read failure for one path is recorded and never aborts the others.

Usage:
    registry = WorkerRegistry()
    registry.register(reference)
    await registry.populate(max_concurrency=8)
    code = registry.get(resolved_path)
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from worker_inline.ingest.file_collector import absolute_path
from worker_inline.transform.scanner import WorkerReference
from worker_inline.utils.constants import FILE_ENCODING, MAX_CONCURRENCY
from worker_inline.utils.errors import RegistryError

logger = logging.getLogger(__name__)


class WorkerRegistry:
    """
    Resolved-path keyed cache of worker module sources.

    Args:
        encoding: Text encoding used to read worker modules.
    """

    def __init__(self, encoding: str = FILE_ENCODING) -> None:
        self.encoding = encoding
        # resolved path -> owner files referencing it (insertion ordered)
        self._owners: Dict[Path, List[Path]] = {}
        self._contents: Dict[Path, str] = {}
        self._failures: Dict[Path, str] = {}
        # worker path -> references found in that worker's own source
        self._references: Dict[Path, List[WorkerReference]] = {}
        self._read_count = 0
        self._sealed = False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @staticmethod
    def resolve(owner_path: Union[str, Path], literal_path: str) -> Path:
        """
        Resolve a literal path against its owner's directory.

        Args:
            owner_path: File containing the reference.
            literal_path: Relative path as written in source.

        Returns:
            Canonical absolute path (symlinks are not resolved).
        """
        owner_dir = os.path.dirname(os.fspath(owner_path))
        return absolute_path(os.path.join(owner_dir, literal_path))

    # ------------------------------------------------------------------
    # Build phase
    # ------------------------------------------------------------------

    def register(self, reference: WorkerReference) -> Path:
        """
        Register a reference's target for reading.

        Returns:
            The resolved worker path.

        Raises:
            RegistryError: If the registry is already sealed.
        """
        resolved = self.resolve(reference.owner_path, reference.literal_path)
        if self._sealed:
            raise RegistryError("Registry is sealed; cannot register new worker paths", resolved)
        owners = self._owners.setdefault(resolved, [])
        if reference.owner_path not in owners:
            owners.append(reference.owner_path)
        return resolved

    def _read(self, path: Path) -> str:
        with open(path, "r", encoding=self.encoding, newline="") as f:
            return f.read()

    async def _load(self, path: Path, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            self._read_count += 1
            try:
                self._contents[path] = await asyncio.to_thread(self._read, path)
            except (OSError, UnicodeDecodeError) as e:
                self._failures[path] = str(e)
                logger.debug("Could not read worker file %s: %s", path, e)

    def set_references(self, worker_path: Path, references: List[WorkerReference]) -> None:
        """
        Record the references found inside a loaded worker's source.

        Raises:
            RegistryError: If the registry is already sealed.
        """
        if self._sealed:
            raise RegistryError("Registry is sealed; cannot add worker references", worker_path)
        self._references[worker_path] = list(references)

    async def load_pending(self, max_concurrency: int = MAX_CONCURRENCY) -> List[Path]:
        """
        Read registered paths that have not been read yet.

        Returns:
            Paths loaded successfully by this call, in registration order.
        """
        if self._sealed:
            return []
        semaphore = asyncio.Semaphore(max(1, max_concurrency))
        pending = [
            path for path in self._owners
            if path not in self._contents and path not in self._failures
        ]
        await asyncio.gather(*(self._load(path, semaphore) for path in pending))
        return [path for path in pending if path in self._contents]

    def seal(self) -> None:
        self._sealed = True

    async def populate(self, max_concurrency: int = MAX_CONCURRENCY) -> None:
        """
        Read every registered worker path exactly once, then seal.

        Args:
            max_concurrency: Upper bound on concurrent reads.
        """
        if self._sealed:
            logger.debug("Registry already populated")
            return

        await self.load_pending(max_concurrency)
        self.seal()
        logger.debug(
            "Registry populated — workers=%d, failures=%d, reads=%d",
            len(self._contents), len(self._failures), self._read_count,
        )

    # ------------------------------------------------------------------
    # Lookup (read-only once sealed)
    # ------------------------------------------------------------------

    def get(self, resolved_path: Path) -> Optional[str]:
        """Return the worker's source text, or None if missing or unreadable."""
        return self._contents.get(resolved_path)

    def failure_reason(self, resolved_path: Path) -> Optional[str]:
        """Why a registered worker could not be read, if it could not."""
        return self._failures.get(resolved_path)

    def references_of(self, resolved_path: Path) -> List[WorkerReference]:
        """References inside the worker's own source, if any were recorded."""
        return list(self._references.get(resolved_path, []))

    def owners_of(self, resolved_path: Path) -> List[Path]:
        return list(self._owners.get(resolved_path, []))

    def __contains__(self, resolved_path: object) -> bool:
        return resolved_path in self._contents

    def __len__(self) -> int:
        return len(self._contents)

    @property
    def paths(self) -> List[Path]:
        """All registered worker paths, readable or not."""
        return list(self._owners)

    @property
    def failures(self) -> Dict[Path, str]:
        return dict(self._failures)

    @property
    def read_count(self) -> int:
        return self._read_count

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "registered": len(self._owners),
            "loaded": len(self._contents),
            "failed": len(self._failures),
            "reads": self._read_count,
        }
