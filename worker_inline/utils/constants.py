"""
worker-inline: Project-wide Constants

All magic values, paths, and defaults are defined here.
No hardcoded values should appear elsewhere in the codebase.
"""

from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "logs"

DEFAULT_SOURCE_ROOT = "src"

# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

STRATEGY_REFERENCE = "reference"  # workers are whatever the scan points at
STRATEGY_NAMING = "naming"  # workers are declared by filename suffix
SUPPORTED_STRATEGIES = [STRATEGY_REFERENCE, STRATEGY_NAMING]
DEFAULT_STRATEGY = STRATEGY_REFERENCE

SOURCE_EXTENSIONS = [".js"]
WORKER_MARKERS = [".worker.js", "-worker.js", "-webworker.js"]
IGNORE_DIRS = []  # e.g. ["node_modules", ".git"]

# ---------------------------------------------------------------------------
# Scanning / Rewriting
# ---------------------------------------------------------------------------

MAX_CONCURRENCY = 8
FILE_ENCODING = "utf-8"
BLOB_MIME_TYPE = "application/javascript"

# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

API_HOST = "127.0.0.1"
API_PORT = 8765

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL = "INFO"
