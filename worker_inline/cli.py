"""
worker-inline: Command Line Interface

Batch mode rewrites worker references under a source root in place.
Serve mode runs the transform API for bundler loaders.

Usage:
    worker-inline transform src/
    worker-inline transform src/ --strategy naming --marker .worker.js --dry-run
    worker-inline serve --port 8765
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from worker_inline.utils.config import get_settings
from worker_inline.utils.constants import SUPPORTED_STRATEGIES
from worker_inline.utils.errors import WorkerInlineError
from worker_inline.utils.logging_config import setup_logging
from worker_inline.workers.orchestrator import Orchestrator

logger = logging.getLogger("worker_inline")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worker-inline",
        description="Inline module-relative Web Workers so the app ships as one bundle",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", action="store_true", help="Also log to the logs/ directory")
    sub = parser.add_subparsers(dest="command", required=True)

    transform = sub.add_parser("transform", help="Rewrite worker references in place")
    transform.add_argument("root", nargs="?", default=None, help="Source root (default: settings.source_root)")
    transform.add_argument("--strategy", choices=SUPPORTED_STRATEGIES, default=None)
    transform.add_argument("--marker", dest="markers", action="append", default=None,
                           help="Worker filename suffix (repeatable, naming strategy)")
    transform.add_argument("--ext", dest="extensions", action="append", default=None,
                           help="Source extension to scan (repeatable)")
    transform.add_argument("--ignore-dir", dest="ignore_dirs", action="append", default=None,
                           help="Directory name to skip (repeatable)")
    transform.add_argument("--concurrency", type=int, default=None, help="Max concurrent file operations")
    transform.add_argument("--dry-run", action="store_true", help="Report changes without writing")

    serve = sub.add_parser("serve", help="Run the transform API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


async def run_transform(args: argparse.Namespace) -> int:
    """
    Run a batch transform.

    Returns:
        Process exit status: 0 on success or no-op, 1 on a fatal error or
        failed write.
    """
    orchestrator = Orchestrator.from_settings(
        get_settings(),
        source_root=args.root,
        strategy=args.strategy,
        worker_markers=args.markers,
        source_extensions=args.extensions,
        ignore_dirs=args.ignore_dirs,
        max_concurrency=args.concurrency,
        dry_run=args.dry_run,
    )

    logger.info("🔧 Transforming web worker imports...")
    try:
        report = await orchestrator.run()
    except WorkerInlineError as e:
        logger.error("❌ Error during transformation: %s", e)
        return 1

    return 1 if report.write_failures else 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "worker_inline.api.app:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level or get_settings().log_level,
        enable_file_logging=args.log_file,
    )

    if args.command == "serve":
        return run_serve(args)
    return asyncio.run(run_transform(args))


if __name__ == "__main__":
    sys.exit(main())
