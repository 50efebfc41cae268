"""
worker-inline: Worker Reference Scanner

Finds the module-relative worker idiom in JavaScript source:

    new Worker(new URL('./path/to/worker.js', import.meta.url))

Single or double quotes are accepted (the closing quote must match the
opening one) and any whitespace, newlines included, may separate tokens.

This is pattern matching, not parsing: an idiom inside a comment or a
string literal matches exactly like real code does. The one exception is
worker source already inlined by a previous run, which is skipped.

Usage:
    scanner = ReferenceScanner(classifier)
    refs = scanner.scan(path, text)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from worker_inline.state.classifier import BaseWorkerClassifier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

WORKER_PATTERN: re.Pattern = re.compile(
    r"\bnew\s+Worker\s*\(\s*"
    r"new\s+URL\s*\(\s*"
    r"(?P<quote>['\"])(?P<path>[^'\"\n]+)(?P=quote)"
    r"\s*,\s*import\.meta\.url\s*\)"
    r"\s*\)"
)

# Template literal emitted by the rewriter; its body never holds a bare backtick
INLINED_CODE_PATTERN: re.Pattern = re.compile(
    r"\bconst\s+__workerCode\s*=\s*`(?:\\.|[^`\\])*`",
    re.DOTALL,
)


def inlined_spans(text: str) -> List[Tuple[int, int]]:
    """(start, end) offsets of worker code inlined by an earlier run."""
    return [match.span() for match in INLINED_CODE_PATTERN.finditer(text)]


@dataclass(frozen=True)
class WorkerReference:
    """A single occurrence of the worker idiom in an owner file."""

    owner_path: Path
    matched_text: str  # verbatim anchor used for replacement
    literal_path: str  # relative path as written in source
    quote: str = "'"
    start: int = field(default=-1, compare=False)  # offset in the scanned text


class ReferenceScanner:
    """
    Extracts worker references from file text.

    Args:
        classifier: Decides which matched literals are kept. Without one,
            every match is kept.
    """

    def __init__(self, classifier: Optional[BaseWorkerClassifier] = None) -> None:
        self.classifier = classifier
        self._files_scanned = 0
        self._matches_found = 0
        self._matches_rejected = 0
        self._matches_inlined = 0

    def scan(self, owner_path: Path, text: str) -> List[WorkerReference]:
        """
        Scan one file's text.

        Args:
            owner_path: Absolute path of the file being scanned.
            text: Raw file content.

        Returns:
            References in source order (first occurrence first).
        """
        self._files_scanned += 1
        references: List[WorkerReference] = []
        spans = inlined_spans(text)

        for match in WORKER_PATTERN.finditer(text):
            if any(start <= match.start() < end for start, end in spans):
                self._matches_inlined += 1
                continue
            literal = match.group("path")
            if self.classifier is not None and not self.classifier.accepts(literal):
                self._matches_rejected += 1
                logger.debug("Ignoring non-worker reference %r in %s", literal, owner_path)
                continue
            references.append(
                WorkerReference(
                    owner_path=owner_path,
                    matched_text=match.group(0),
                    literal_path=literal,
                    quote=match.group("quote"),
                    start=match.start(),
                )
            )

        self._matches_found += len(references)
        return references

    @property
    def stats(self) -> dict:
        return {
            "files_scanned": self._files_scanned,
            "matches": self._matches_found,
            "rejected": self._matches_rejected,
            "inlined": self._matches_inlined,
        }
