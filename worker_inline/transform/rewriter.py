"""
worker-inline: Source Rewriter

Replaces each resolvable worker reference with a self-contained expression
that embeds the worker source in a template literal and builds the worker
from a Blob URL:

    (function() {
        const __workerCode = `...escaped worker source...`;
        const blob = new Blob([__workerCode], { type: 'application/javascript' });
        const url = URL.createObjectURL(blob);
        const worker = new Worker(url);
        URL.revokeObjectURL(url);
        return worker;
      })()

Workers that spawn workers are inlined with their own references rewritten
first. Unresolved references produce one warning each and are left
byte-identical.

Usage:
    rewriter = SourceRewriter(registry)
    result = rewriter.rewrite(path, text, references)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from worker_inline.state.registry import WorkerRegistry
from worker_inline.transform.scanner import WorkerReference
from worker_inline.utils.constants import BLOB_MIME_TYPE

logger = logging.getLogger(__name__)

# Order matters: backslashes first so later escapes are not doubled.
_TEMPLATE_ESCAPES = (
    ("\\", "\\\\"),
    ("`", "\\`"),
    ("$", "\\$"),
)

INLINE_WORKER_TEMPLATE = """(function() {{
    const __workerCode = `{code}`;
    const blob = new Blob([__workerCode], {{ type: '{mime}' }});
    const url = URL.createObjectURL(blob);
    const worker = new Worker(url);
    URL.revokeObjectURL(url);
    return worker;
  }})()"""


def escape_template_literal(text: str) -> str:
    """
    Escape text for embedding between backticks in a JS template literal.

    Args:
        text: Raw worker source.

    Returns:
        Text with backslashes, backticks and dollar signs escaped.
    """
    for raw, escaped in _TEMPLATE_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def build_inline_worker(code: str, mime_type: str = BLOB_MIME_TYPE) -> str:
    """
    Build the self-invoking Blob worker expression for a worker's source.

    Args:
        code: Raw (unescaped) worker source.
        mime_type: MIME type given to the Blob.
    """
    return INLINE_WORKER_TEMPLATE.format(code=escape_template_literal(code), mime=mime_type)


@dataclass
class RewriteResult:
    """Outcome of rewriting one owner file."""

    owner_path: Path
    original_text: str
    new_text: str
    replaced: List[WorkerReference] = field(default_factory=list)
    unresolved: List[WorkerReference] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.new_text != self.original_text


class SourceRewriter:
    """
    Rewrites worker references using a populated registry.

    A worker that spawns workers of its own is inlined with those inner
    references already rewritten (resolved against the worker's directory),
    so the emitted code never carries a live idiom. Inlined worker code is
    built once per resolved path and reused. A reference that leads back into
    the chain being inlined is a cycle and stays unresolved.

    Args:
        registry: Sealed worker registry.
        mime_type: MIME type for the generated Blob.
    """

    def __init__(self, registry: WorkerRegistry, mime_type: str = BLOB_MIME_TYPE) -> None:
        self.registry = registry
        self.mime_type = mime_type
        self._inlined: Dict[Path, str] = {}
        self._replaced_count = 0
        self._unresolved_count = 0

    def rewrite(
        self,
        owner_path: Path,
        text: str,
        references: List[WorkerReference],
    ) -> RewriteResult:
        """
        Rewrite one file's text.

        Each reference is spliced at its scanned offset, or else at the first
        occurrence of its exact matched text after the previous reference.
        Only the original text is searched, so repeated identical references
        are consumed in source order and never match inside code that was
        just embedded.

        Args:
            owner_path: Path of the file being rewritten.
            text: Original file text.
            references: References found in that text, in source order.

        Returns:
            RewriteResult holding the new text and per-reference outcome.
        """
        return self._rewrite(owner_path, text, references, chain=())

    def _rewrite(
        self,
        owner_path: Path,
        text: str,
        references: List[WorkerReference],
        chain: Tuple[Path, ...],
    ) -> RewriteResult:
        result = RewriteResult(owner_path=owner_path, original_text=text, new_text=text)
        pieces: List[str] = []
        cursor = 0

        for reference in references:
            start = reference.start
            if start < cursor or not text.startswith(reference.matched_text, start):
                start = text.find(reference.matched_text, cursor)
            if start < 0:
                logger.debug("Reference %r no longer present in %s", reference.literal_path, owner_path)
                continue
            end = start + len(reference.matched_text)
            line = text.count("\n", 0, start) + 1

            resolved = self.registry.resolve(reference.owner_path, reference.literal_path)
            if resolved in chain:
                code = None
                logger.warning(
                    "Circular worker reference: %s (referenced from %s:%d)",
                    resolved, owner_path, line,
                )
            else:
                code = self._inline_code(resolved, chain)
                if code is None:
                    logger.warning(
                        "Worker file not found: %s (referenced from %s:%d)%s",
                        resolved, owner_path, line, self._describe_failure(resolved),
                    )

            if code is None:
                result.unresolved.append(reference)
                self._unresolved_count += 1
                pieces.append(text[cursor:end])
            else:
                pieces.append(text[cursor:start])
                pieces.append(build_inline_worker(code, self.mime_type))
                result.replaced.append(reference)
                self._replaced_count += 1
            cursor = end

        pieces.append(text[cursor:])
        result.new_text = "".join(pieces)
        return result

    def _inline_code(self, resolved: Path, chain: Tuple[Path, ...]) -> Optional[str]:
        """Worker source with its own references rewritten, or None if unreadable."""
        if resolved in self._inlined:
            return self._inlined[resolved]
        code = self.registry.get(resolved)
        if code is None:
            return None
        inner = self.registry.references_of(resolved)
        if inner:
            code = self._rewrite(resolved, code, inner, chain + (resolved,)).new_text
        self._inlined[resolved] = code
        return code

    def _describe_failure(self, resolved: Path) -> str:
        reason = self.registry.failure_reason(resolved)
        return f" — {reason}" if reason else ""

    @property
    def stats(self) -> dict:
        return {
            "replaced": self._replaced_count,
            "unresolved": self._unresolved_count,
        }
