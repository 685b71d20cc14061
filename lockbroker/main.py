#!/usr/bin/env python3
"""
Lockbroker - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server and the queue maintenance loop

All queue logic is in the modules, following black box principles.
"""

import asyncio
import logging
import logging.config as log_config
from contextlib import asynccontextmanager, suppress
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lockbroker import __version__
from lockbroker.logging_config import get_logging_config

# Import modules through their black box interfaces
from lockbroker.modules.api import (
    ActionRequest,
    ActionResponse,
    CommandPayload,
    CompleteRequest,
    CompleteResponse,
    NextCommandResponse,
    StatusResponse,
)
from lockbroker.modules.config import get_config
from lockbroker.modules.queue import (
    ActuationFailure,
    InvalidInput,
    NotFound,
    QueueModule,
    StoreUnavailable,
    WaitTimeout,
)
from lockbroker.modules.storage import StorageModule

# Get configuration
config = get_config()

log_config.dictConfig(get_logging_config(config.get("log_level")))
logger = logging.getLogger("lockbroker.main")

# Module instances (initialized at startup)
storage_module: Optional[StorageModule] = None
queue_module: Optional[QueueModule] = None
maintenance_task: Optional[asyncio.Task] = None


async def run_maintenance(queue: QueueModule, interval: float) -> None:
    """
    Periodically fail abandoned claims and drop expired work items.

    Best-effort: a failed pass is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await queue.expire_stale()
            await queue.retention_sweep()
        except Exception as e:
            logger.error(f"Queue maintenance pass failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global storage_module, queue_module, maintenance_task

    # Startup
    logger.info("Starting Lockbroker API...")

    storage_module = StorageModule(config)
    store = await storage_module.connect()

    queue_module = QueueModule(
        store,
        claim_guard=config.get("claim_guard", True),
        wait_timeout=config.get("wait_timeout"),
        poll_interval=config.get("poll_interval"),
        retention_seconds=config.get("retention_seconds"),
        processing_timeout=config.get("processing_timeout"),
    )

    maintenance_task = asyncio.create_task(
        run_maintenance(queue_module, config.get("sweep_interval"))
    )

    logger.info(f"Lockbroker API started ({storage_module.backend} store)")

    yield

    # Shutdown
    logger.info("Shutting down Lockbroker API...")

    if maintenance_task:
        maintenance_task.cancel()
        with suppress(asyncio.CancelledError):
            await maintenance_task
        maintenance_task = None

    if storage_module:
        await storage_module.disconnect()

    queue_module = None
    logger.info("Lockbroker API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Lockbroker API",
    description="Lockbroker - one device, many requesters, strict FIFO",
    version=__version__,
    lifespan=lifespan,
)


# Dependency injection helpers
async def require_queue() -> QueueModule:
    """Return the queue module or fail with 503 before startup completes."""
    if not queue_module:
        raise HTTPException(503, "Service not initialized")
    return queue_module


def _is_device_route(request: Request) -> bool:
    return request.url.path.startswith("/api/rpi/")


# Web Client Endpoints


@app.get("/api/status", response_model=StatusResponse)
async def get_status(
    requester_id: Optional[str] = Query(None, alias="requesterId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    queue: QueueModule = Depends(require_queue),
):
    """
    Queue status for the web page.

    Returns:
        200: Whether the device is busy, queue length, who is being served
             and the caller's position (0 if nothing queued)
    """
    status = await queue.query_status(requester_id or user_id)
    return StatusResponse.from_status(status)


@app.post("/api/action", response_model=ActionResponse)
async def submit_action(request: ActionRequest, queue: QueueModule = Depends(require_queue)):
    """
    Queue an action and hold the request open until the device reports back.

    Returns:
        200: Device performed the action
        400: Invalid action number or missing requester id
        500: Device reported failure
        504: No outcome within the wait timeout (the action may still run)
    """
    try:
        item = await queue.submit_and_wait(request.action, request.requester_id)
    except InvalidInput:
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid input"})
    except WaitTimeout as e:
        logger.warning(f"Action wait timed out: {e}")
        return JSONResponse(status_code=504, content={"success": False, "message": "Timeout"})
    except ActuationFailure as e:
        message = f"Failed: {e.reason}" if e.reason else "Failed"
        return JSONResponse(status_code=500, content={"success": False, "message": message})
    except NotFound as e:
        # Removed before the waiter could read it
        logger.error(f"Action record disappeared while waiting: {e}")
        return JSONResponse(status_code=500, content={"success": False, "message": "Failed"})

    return ActionResponse(
        success=True,
        message=f"Lock {item.action} opened",
        timestamp=item.completed_at,
    )


# Device Endpoints


@app.get("/api/rpi/next-command", response_model=NextCommandResponse)
async def next_command(queue: QueueModule = Depends(require_queue)):
    """
    Claim the next command for the device.

    Returns:
        200: {"command": {...}} or {"command": null} when idle or busy
    """
    item = await queue.claim_next()
    if not item:
        return NextCommandResponse(command=None)
    return NextCommandResponse(command=CommandPayload.from_item(item))


@app.post("/api/rpi/complete", response_model=CompleteResponse)
async def complete_command(request: CompleteRequest, queue: QueueModule = Depends(require_queue)):
    """
    Record the device's outcome for a command.

    Returns:
        200: Outcome recorded
        404: Unknown command id
    """
    await queue.complete(request.id, request.success, request.reason)
    return CompleteResponse(success=True)


# Health/Monitoring Endpoints


@app.get("/healthz")
async def healthz():
    """
    Minimal liveness endpoint.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health")
async def health_check():
    """
    Health check including the work item store.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    try:
        if queue_module:
            await queue_module.store.ping()
            store_status = "connected"
        else:
            store_status = "disconnected"

        backend = storage_module.backend if storage_module else None

        if store_status == "connected":
            return {
                "status": "healthy",
                "store": store_status,
                "backend": backend,
                "version": __version__,
            }
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "store": store_status, "backend": backend},
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})


# Error handlers


@app.exception_handler(StoreUnavailable)
async def store_error_handler(request: Request, exc: StoreUnavailable):
    """Handle work item store failures."""
    logger.error(f"Work item store unavailable: {exc}")
    if _is_device_route(request):
        return JSONResponse(status_code=503, content={"error": "Store unavailable"})
    return JSONResponse(status_code=503, content={"success": False, "message": "Store unavailable"})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    """Handle unknown work item ids."""
    logger.warning(str(exc))
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    if _is_device_route(request):
        return JSONResponse(status_code=400, content={"error": "Invalid input"})
    return JSONResponse(status_code=400, content={"success": False, "message": "Invalid input"})


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "lockbroker.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )


if __name__ == "__main__":
    run()
