"""
FastAPI server for the Alfie integration sync daemon.

Endpoints:
- GET  /health           - Liveness and scheduler state
- GET  /v1/sync/status   - Last reconciliation cycle and scheduler counters
- POST /v1/sync/run      - Run a cycle now (409 if one is already running)

Startup behavior:
- With ALFIE_MODE enabled, the sync scheduler starts in the lifespan and runs
  its first cycle immediately; it is stopped on shutdown
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger('alfie.server')

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from .config import SyncConfig
from .sync.engine import run_once
from .sync.scheduler import SyncScheduler


# --- Response Models ---


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: str
    sync_enabled: bool
    scheduler_running: bool


class SyncStatusResponse(BaseModel):
    """Response body for /v1/sync/status and /v1/sync/run."""

    running: bool = Field(..., description="Whether the scheduler thread is alive")
    interval_seconds: float = Field(..., description="Seconds between scheduled cycles")
    cycle_in_progress: bool = Field(..., description="Whether a cycle is running right now")
    cycles_run: int = Field(..., description="Cycles completed since startup")
    skipped_cycles: int = Field(..., description="Cycles skipped because one was in flight")
    last_sync: str | None = Field(None, description="UTC ISO time the last cycle finished")
    last_result: dict[str, Any] | None = Field(None, description="Statistics from the last cycle")
    last_error: str | None = Field(None, description="Error from the last cycle, if it raised")


# --- Application Setup ---


def create_app(
    config: SyncConfig | None = None,
    scheduler: SyncScheduler | None = None,
) -> FastAPI:
    """
    Build the daemon app.

    Config is read from the environment at startup unless given.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sync_config = config or SyncConfig.from_env()
        sync_scheduler = scheduler or SyncScheduler(sync_config)
        app.state.config = sync_config
        app.state.scheduler = sync_scheduler

        logger.info("Alfie daemon starting...")
        if sync_config.enabled:
            sync_scheduler.start()
        else:
            logger.info("   ALFIE_MODE not enabled; integration sync scheduler not started")

        yield

        logger.info("Alfie daemon shutting down...")
        sync_scheduler.stop()

    app = FastAPI(
        title="Alfie Daemon",
        description="Tenant integration credential sync",
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        state = request.app.state
        return HealthResponse(
            status="ok",
            sync_enabled=state.config.enabled,
            scheduler_running=state.scheduler.is_running,
        )

    @app.get("/v1/sync/status", response_model=SyncStatusResponse)
    async def sync_status(request: Request) -> SyncStatusResponse:
        return SyncStatusResponse(**request.app.state.scheduler.get_status())

    @app.post("/v1/sync/run", response_model=SyncStatusResponse)
    async def sync_run(request: Request) -> SyncStatusResponse:
        sync_scheduler: SyncScheduler = request.app.state.scheduler
        loop = asyncio.get_running_loop()
        ran = await loop.run_in_executor(None, sync_scheduler.run_cycle, "manual")
        if not ran:
            raise HTTPException(
                status_code=409,
                detail="A sync cycle is already in progress.",
            )
        return SyncStatusResponse(**sync_scheduler.get_status())

    return app


app = create_app()


# --- CLI Entry Point ---


def main() -> None:
    """Run the daemon server, or a single sync cycle with --once."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Alfie integration sync daemon")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=5998, help="Bind port")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one reconciliation cycle and exit",
    )
    args = parser.parse_args()

    if args.once:
        stats = run_once(SyncConfig.from_env())
        print(json.dumps(stats, indent=2))
        return

    print(f"Starting Alfie Daemon on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
