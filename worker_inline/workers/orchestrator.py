"""
worker-inline: Transform Orchestrator

Central coordinator for one transform run:
  FileCollector → ReferenceScanner → WorkerRegistry → SourceRewriter → write-back

Phases run strictly in sequence. Within the scan, registry and write phases
individual files are handled concurrently under a shared bound. The
registry population is a global barrier: no file is rewritten before every
worker path discovered anywhere in the tree has been read (or has failed).

Per-file states:
    UNSCANNED → NO_MATCH                                    (no write)
    UNSCANNED → AWAITING_REGISTRY → REWRITTEN → WRITTEN     (content changed)
                                  → UNCHANGED               (nothing resolvable)

Usage:
    from worker_inline.workers.orchestrator import Orchestrator
    orch = Orchestrator("src", strategy="reference")
    report = await orch.run()

    # Embedded (bundler loader) mode:
    await orch.prepare()
    new_text = orch.transform_source(path, text)
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from worker_inline.ingest.file_collector import FileCollector, absolute_path
from worker_inline.state.classifier import BaseWorkerClassifier, build_classifier
from worker_inline.state.registry import WorkerRegistry
from worker_inline.transform.rewriter import RewriteResult, SourceRewriter
from worker_inline.transform.scanner import ReferenceScanner, WorkerReference
from worker_inline.utils.config import Settings
from worker_inline.utils.constants import (
    BLOB_MIME_TYPE,
    DEFAULT_STRATEGY,
    FILE_ENCODING,
    MAX_CONCURRENCY,
)
from worker_inline.utils.errors import RegistryError, ScanError

logger = logging.getLogger(__name__)


class FileState(str, Enum):
    """Lifecycle of one owner file within a run."""

    UNSCANNED = "unscanned"
    NO_MATCH = "no_match"
    AWAITING_REGISTRY = "awaiting_registry"
    REWRITTEN = "rewritten"
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    WRITE_FAILED = "write_failed"


@dataclass
class ScannedFile:
    """A scan target with its original text and references."""

    path: Path
    text: str
    references: List[WorkerReference] = field(default_factory=list)
    state: FileState = FileState.UNSCANNED


@dataclass
class TransformReport:
    """Aggregated outcome of one run."""

    root: Path
    strategy: str
    dry_run: bool = False
    files_collected: int = 0
    files_scanned: int = 0
    references_found: int = 0
    worker_modules: List[Path] = field(default_factory=list)
    unresolved: int = 0
    registry_reads: int = 0
    states: Dict[Path, FileState] = field(default_factory=dict)
    elapsed_s: float = 0.0

    def paths_in(self, state: FileState) -> List[Path]:
        return [path for path, s in self.states.items() if s == state]

    @property
    def transformed(self) -> List[Path]:
        """Files whose content changed (written, or would be in a dry run)."""
        return self.paths_in(FileState.WRITTEN) + self.paths_in(FileState.REWRITTEN)

    @property
    def write_failures(self) -> List[Path]:
        return self.paths_in(FileState.WRITE_FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": str(self.root),
            "strategy": self.strategy,
            "dry_run": self.dry_run,
            "files_collected": self.files_collected,
            "files_scanned": self.files_scanned,
            "references_found": self.references_found,
            "worker_modules": [str(p) for p in self.worker_modules],
            "files_transformed": len(self.transformed),
            "unresolved": self.unresolved,
            "write_failures": len(self.write_failures),
            "registry_reads": self.registry_reads,
            "elapsed_s": round(self.elapsed_s, 3),
        }


class Orchestrator:
    """
    Transform pipeline orchestrator.

    Args:
        source_root: Directory whose files are transformed.
        strategy: Worker classification strategy ("reference" | "naming").
        worker_markers: Filename suffixes marking workers (naming strategy).
        source_extensions: Extensions of files scanned as owners.
        ignore_dirs: Directory names pruned from collection.
        max_concurrency: Bound on concurrent file reads and writes.
        mime_type: MIME type of the generated Blob.
        dry_run: Compute rewrites but never write.
    """

    def __init__(
        self,
        source_root: Union[str, Path],
        strategy: str = DEFAULT_STRATEGY,
        worker_markers: Optional[Iterable[str]] = None,
        source_extensions: Optional[Iterable[str]] = None,
        ignore_dirs: Optional[Iterable[str]] = None,
        max_concurrency: int = MAX_CONCURRENCY,
        mime_type: str = BLOB_MIME_TYPE,
        encoding: str = FILE_ENCODING,
        dry_run: bool = False,
    ) -> None:
        self.source_root = absolute_path(source_root)
        self.strategy = strategy
        self.worker_markers = list(worker_markers) if worker_markers is not None else None
        self.source_extensions = list(source_extensions) if source_extensions is not None else None
        self.ignore_dirs = list(ignore_dirs or [])
        self.max_concurrency = max(1, max_concurrency)
        self.mime_type = mime_type
        self.encoding = encoding
        self.dry_run = dry_run

        # Per-run state, rebuilt by prepare()
        self.classifier: Optional[BaseWorkerClassifier] = None
        self.registry: Optional[WorkerRegistry] = None
        self.scanner: Optional[ReferenceScanner] = None
        self.rewriter: Optional[SourceRewriter] = None
        self._scanned: Dict[Path, ScannedFile] = {}
        self._report: Optional[TransformReport] = None

        logger.debug(
            "Orchestrator initialized — root=%s, strategy=%s, dry_run=%s",
            self.source_root, strategy, dry_run,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "Orchestrator":
        """Build an orchestrator from Settings, with keyword overrides."""
        options: Dict[str, Any] = {
            "source_root": settings.source_root,
            "strategy": settings.strategy,
            "worker_markers": settings.worker_markers,
            "source_extensions": settings.source_extensions,
            "ignore_dirs": settings.ignore_dirs,
            "max_concurrency": settings.max_concurrency,
            "mime_type": settings.blob_mime_type,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**options)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.source_root))
        except ValueError:
            return str(path)

    def _read_text(self, path: Path) -> str:
        # newline="" keeps CRLF intact so unchanged files compare byte-for-byte
        with open(path, "r", encoding=self.encoding, newline="") as f:
            return f.read()

    def _write_atomic(self, path: Path, text: str) -> None:
        """Write text via temp file + os.replace(), keeping the file mode."""
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with open(fd, "w", encoding=self.encoding, newline="") as f:
                f.write(text)
            shutil.copymode(path, tmp_name)
            os.replace(tmp_name, str(path))
        except Exception:
            try:
                os.unlink(tmp_name)
            except OSError as e:
                logger.debug("Could not remove temp file %s: %s", tmp_name, e)
            raise

    # ------------------------------------------------------------------
    # Phase 1: collect + scan
    # ------------------------------------------------------------------

    async def _scan_file(
        self, path: Path, scanner: ReferenceScanner, semaphore: asyncio.Semaphore
    ) -> ScannedFile:
        async with semaphore:
            try:
                text = await asyncio.to_thread(self._read_text, path)
            except (OSError, UnicodeDecodeError) as e:
                raise ScanError(path, str(e)) from e
        return ScannedFile(path=path, text=text, references=scanner.scan(path, text))

    async def _populate_registry(
        self,
        registry: WorkerRegistry,
        classifier: BaseWorkerClassifier,
    ) -> None:
        """Read workers, following references inside worker sources, then seal."""
        worker_scanner = ReferenceScanner(classifier)
        loaded = await registry.load_pending(self.max_concurrency)
        while loaded:
            for path in loaded:
                inner = worker_scanner.scan(path, registry.get(path) or "")
                if not inner:
                    continue
                registry.set_references(path, inner)
                for reference in inner:
                    classifier.observe(registry.register(reference))
            loaded = await registry.load_pending(self.max_concurrency)
        registry.seal()

    async def _build(self) -> Tuple[WorkerRegistry, TransformReport]:
        started = time.perf_counter()
        classifier = build_classifier(
            self.strategy,
            markers=self.worker_markers,
            source_extensions=self.source_extensions,
        )
        scanner = ReferenceScanner(classifier)
        registry = WorkerRegistry(encoding=self.encoding)
        report = TransformReport(root=self.source_root, strategy=classifier.name, dry_run=self.dry_run)
        self.classifier, self.scanner, self.registry, self._report = classifier, scanner, registry, report
        self.rewriter = None
        self._scanned = {}

        files = FileCollector(self.source_root, ignore_dirs=self.ignore_dirs).collect()
        report.files_collected = len(files)
        targets = [path for path in files if classifier.is_scan_target(path)]
        logger.info("Scanning %d source files for worker references...", len(targets))

        semaphore = asyncio.Semaphore(self.max_concurrency)
        scanned = await asyncio.gather(*(self._scan_file(path, scanner, semaphore) for path in targets))

        for item in scanned:
            self._scanned[item.path] = item
            if not item.references:
                item.state = FileState.NO_MATCH
            else:
                item.state = FileState.AWAITING_REGISTRY
                for reference in item.references:
                    classifier.observe(registry.register(reference))
            report.states[item.path] = item.state
            report.references_found += len(item.references)
        report.files_scanned = len(scanned)

        # Barrier: every discovered worker is read before any rewrite
        await self._populate_registry(registry, classifier)
        self.rewriter = SourceRewriter(registry, mime_type=self.mime_type)

        report.worker_modules = registry.paths
        logger.info("Found %d worker files:", len(report.worker_modules))
        for path in report.worker_modules:
            logger.info("  - %s", self._relative(path))

        report.registry_reads = registry.read_count
        report.elapsed_s = time.perf_counter() - started
        return registry, report

    async def prepare(self) -> WorkerRegistry:
        """
        Collect, scan and populate the registry without writing anything.

        Returns:
            The sealed worker registry.

        Raises:
            CollectionError: If the source root cannot be traversed.
            ScanError: If a collected source file cannot be read.
        """
        registry, _ = await self._build()
        return registry

    # ------------------------------------------------------------------
    # Phase 2: rewrite + write
    # ------------------------------------------------------------------

    async def _write_file(self, item: ScannedFile, new_text: str, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            try:
                await asyncio.to_thread(self._write_atomic, item.path, new_text)
            except OSError as e:
                item.state = FileState.WRITE_FAILED
                logger.error("Failed to write %s: %s", self._relative(item.path), e)
                return
        item.state = FileState.WRITTEN
        logger.info("✓ Transformed: %s", self._relative(item.path))

    async def run(self) -> TransformReport:
        """
        Execute a full batch transform.

        Returns:
            TransformReport describing the run.

        Raises:
            CollectionError: If the source root cannot be traversed.
            ScanError: If a collected source file cannot be read.
        """
        started = time.perf_counter()
        registry, report = await self._build()

        rewriter = SourceRewriter(registry, mime_type=self.mime_type)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        writes = []

        for item in self._scanned.values():
            if item.state != FileState.AWAITING_REGISTRY:
                continue
            result = rewriter.rewrite(item.path, item.text, item.references)
            report.unresolved += len(result.unresolved)
            if not result.changed:
                item.state = FileState.UNCHANGED
                continue
            item.state = FileState.REWRITTEN
            if self.dry_run:
                logger.info("Would transform: %s", self._relative(item.path))
            else:
                writes.append(self._write_file(item, result.new_text, semaphore))

        await asyncio.gather(*writes)

        for item in self._scanned.values():
            report.states[item.path] = item.state
        report.elapsed_s = time.perf_counter() - started

        self._log_summary(report)
        return report

    def _log_summary(self, report: TransformReport) -> None:
        count = len(report.transformed)
        if report.write_failures:
            logger.error("Failed to write %d file(s)", len(report.write_failures))
        if count == 0:
            logger.info("No files needed transformation")
        elif report.dry_run:
            logger.info("Dry run: %d file(s) would be transformed", count)
        else:
            logger.info("Successfully transformed %d file(s)", count)

    # ------------------------------------------------------------------
    # Embedded mode
    # ------------------------------------------------------------------

    def rewrite_source(self, path: Union[str, Path], text: str) -> RewriteResult:
        """
        Rewrite one file's text against the prepared registry.

        A relative path is taken relative to the source root. Files that are
        not scan targets (e.g. naming-convention workers) come back unchanged.

        Raises:
            RegistryError: If prepare() has not completed.
        """
        classifier, scanner, rewriter = self.classifier, self.scanner, self.rewriter
        if classifier is None or scanner is None or rewriter is None or not self.is_prepared:
            raise RegistryError("Registry not prepared; call prepare() first")

        owner = Path(path)
        if not owner.is_absolute():
            owner = self.source_root / owner
        owner = absolute_path(owner)
        if not classifier.is_scan_target(owner):
            return RewriteResult(owner_path=owner, original_text=text, new_text=text)

        return rewriter.rewrite(owner, text, scanner.scan(owner, text))

    def transform_source(self, path: Union[str, Path], text: str) -> str:
        """Return the transformed text for one file (bundler loader entry point)."""
        return self.rewrite_source(path, text).new_text

    # Properties
    # ------------------------------------------------------------------

    @property
    def is_prepared(self) -> bool:
        return self.registry is not None and self.registry.is_sealed

    @property
    def report(self) -> Optional[TransformReport]:
        return self._report

    @property
    def stats(self) -> Dict[str, Any]:
        """Aggregated stats from all stages."""
        return {
            "root": str(self.source_root),
            "strategy": self.strategy,
            "prepared": self.is_prepared,
            "scanner": self.scanner.stats if self.scanner else {},
            "registry": self.registry.stats if self.registry else {},
            "files_tracked": len(self._scanned),
        }
