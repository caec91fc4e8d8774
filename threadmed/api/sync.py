"""
Zotero connection and sync API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from typing import AsyncGenerator
import asyncio
import logging

from threadmed.api.dependencies import get_sync_engine
from threadmed.models.sync import ConnectionInfo, SyncProgress, SyncResult, ZoteroStatus
from threadmed.services.sync_engine import SyncEngine, SYNC_IN_PROGRESS

router = APIRouter()
logger = logging.getLogger(__name__)

TERMINAL_PHASES = ("complete", "error")


class ConnectRequest(BaseModel):
    """Credentials for connecting to a Zotero user library."""
    api_key: str
    user_id: str


@router.get("/zotero/status", response_model=ZoteroStatus)
async def get_status(engine: SyncEngine = Depends(get_sync_engine)):
    """
    Get the Zotero connection status.

    Returns:
        Whether credentials are stored, the user ID and the sync cursor.
        The API key is never returned.
    """
    return engine.get_status()


@router.post("/zotero/connect", response_model=ConnectionInfo)
async def connect(request: ConnectRequest, engine: SyncEngine = Depends(get_sync_engine)):
    """
    Validate Zotero credentials and store them if valid.

    Returns:
        Validation outcome with the library's item count.
    """
    return await engine.connect(request.api_key, request.user_id)


@router.post("/zotero/disconnect")
async def disconnect(engine: SyncEngine = Depends(get_sync_engine)):
    """Forget stored Zotero credentials and the sync cursor."""
    engine.disconnect()
    return {"status": "disconnected"}


@router.post("/zotero/sync", response_model=SyncResult)
async def run_sync(engine: SyncEngine = Depends(get_sync_engine)):
    """
    Run one sync cycle and return its result.

    Subscribe to /zotero/sync/progress before calling this to follow progress.

    Raises:
        HTTPException: 409 if a sync is already running.
    """
    if engine.is_syncing:
        raise HTTPException(status_code=409, detail=SYNC_IN_PROGRESS)
    return await engine.sync_library()


async def generate_progress_events(engine: SyncEngine) -> AsyncGenerator[str, None]:
    """
    Generate SSE events for sync progress.

    Yields:
        SSE-formatted event strings, ending after a complete or error event.
    """
    queue: asyncio.Queue[SyncProgress] = asyncio.Queue()
    listener = queue.put_nowait
    engine.add_progress_listener(listener)
    try:
        while True:
            progress = await queue.get()
            yield f"data: {progress.model_dump_json(by_alias=True)}\n\n"
            if progress.phase in TERMINAL_PHASES:
                break
    finally:
        engine.remove_progress_listener(listener)


@router.get("/zotero/sync/progress")
async def stream_sync_progress(engine: SyncEngine = Depends(get_sync_engine)):
    """
    Stream sync progress via Server-Sent Events (SSE).

    Returns:
        SSE stream of progress events for the next (or current) sync.
    """
    return StreamingResponse(
        generate_progress_events(engine),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"  # Disable buffering in nginx
        }
    )
