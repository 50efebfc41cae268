"""
worker-inline: Pipeline orchestration.

    FileCollector → ReferenceScanner → WorkerRegistry → SourceRewriter → write-back

The Orchestrator coordinates all stages.
"""

from worker_inline.workers.orchestrator import FileState, Orchestrator, TransformReport

__all__ = [
    "FileState",
    "Orchestrator",
    "TransformReport",
]
