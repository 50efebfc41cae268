"""
worker-inline: FastAPI Transform Service

Embedded mode for bundlers: a loader posts each module's path and text and
gets the transformed text back. The worker registry is prepared once from
the configured source root during application startup.

Run:
    uvicorn worker_inline.api.app:app --port 8765

Sanity check:
    curl http://127.0.0.1:8765/health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from worker_inline import __version__
from worker_inline.ingest.file_collector import absolute_path
from worker_inline.utils.config import Settings, get_settings
from worker_inline.utils.errors import WorkerInlineError
from worker_inline.workers.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pydantic Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    timestamp: str
    source_root: str
    strategy: str
    prepared: bool
    worker_count: int = 0
    last_error: Optional[str] = None


class WorkersResponse(BaseModel):
    """Worker modules discovered by the last prepare pass."""

    workers: List[str] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)


class TransformRequest(BaseModel):
    """One module handed over by the bundler loader."""

    path: str = Field(..., description="Module path, absolute or relative to the source root")
    text: str = Field(..., description="Module source text")


class TransformResponse(BaseModel):
    """Transformed module text."""

    path: str
    text: str
    changed: bool
    replaced: int = 0
    unresolved: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------


class AppState:
    """Holds the prepared orchestrator for the configured source root."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings: Settings = settings or get_settings()
        self.orchestrator: Optional[Orchestrator] = None
        self.last_error: Optional[str] = None

    @property
    def source_root(self) -> Path:
        return absolute_path(self.settings.source_root)

    async def prepare(self) -> bool:
        """
        (Re)build the worker registry from the source root.

        Returns:
            True if the registry is ready.
        """
        orchestrator = Orchestrator.from_settings(self.settings, dry_run=True)
        try:
            await orchestrator.prepare()
        except WorkerInlineError as e:
            self.last_error = str(e)
            logger.error("Registry preparation failed: %s", e)
            return False

        self.orchestrator = orchestrator
        self.last_error = None
        logger.info(
            "Registry ready — root=%s, workers=%d",
            self.source_root, len(orchestrator.registry or []),
        )
        return True

    @property
    def is_prepared(self) -> bool:
        return self.orchestrator is not None and self.orchestrator.is_prepared


app_state = AppState()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — prepare the registry before serving."""
    logger.info("worker-inline API starting — root=%s", app_state.source_root)
    await app_state.prepare()
    yield
    logger.info("worker-inline API shutting down")


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="worker-inline",
    description="Inline module-relative Web Workers as Blob workers",
    version=__version__,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# REST Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check — reports whether the registry is prepared."""
    registry = app_state.orchestrator.registry if app_state.orchestrator else None
    return HealthResponse(
        status="ok" if app_state.is_prepared else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        source_root=str(app_state.source_root),
        strategy=app_state.settings.strategy,
        prepared=app_state.is_prepared,
        worker_count=len(registry) if registry is not None else 0,
        last_error=app_state.last_error,
    )


@app.get("/workers", response_model=WorkersResponse)
async def list_workers() -> WorkersResponse:
    """List worker modules and read failures from the prepared registry."""
    if not app_state.is_prepared:
        raise HTTPException(status_code=503, detail="Registry not prepared")
    registry = app_state.orchestrator.registry
    return WorkersResponse(
        workers=[str(path) for path in registry.paths if path in registry],
        failures={str(path): reason for path, reason in registry.failures.items()},
    )


@app.post("/transform", response_model=TransformResponse)
async def transform(request: TransformRequest) -> TransformResponse:
    """
    Transform one module against the prepared registry.

    Body: {"path": "app.js", "text": "..."}  (relative paths are under the source root)
    """
    if not request.path.strip():
        raise HTTPException(status_code=400, detail="Empty module path")
    if not app_state.is_prepared:
        raise HTTPException(status_code=503, detail="Registry not prepared")

    result = app_state.orchestrator.rewrite_source(request.path, request.text)
    return TransformResponse(
        path=str(result.owner_path),
        text=result.new_text,
        changed=result.changed,
        replaced=len(result.replaced),
        unresolved=[ref.literal_path for ref in result.unresolved],
    )


@app.post("/refresh", response_model=HealthResponse)
async def refresh() -> HealthResponse:
    """Rebuild the registry, e.g. after worker files changed on disk."""
    if not await app_state.prepare():
        raise HTTPException(status_code=500, detail=app_state.last_error or "Registry preparation failed")
    return await health_check()
