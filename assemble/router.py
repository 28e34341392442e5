"""
Pipeline router for the /pipeline endpoints.

This module exposes the queue operations and the run trigger to the
presentation layer. The queue lives on ``app.state``; a run works on a
snapshot and returns the merged PDF as a download.
"""

import logging
from io import BytesIO
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import StreamingResponse

from .config import OUTPUT_FILENAME, OUTPUT_MEDIA_TYPE
from .pipeline_queue import ItemStatus, PipelineQueue, RawFile
from .utils.conversion_lookup import get_supported_formats
from .utils.error_handling import (
    ErrorCode,
    ItemNotFoundError,
    PipelineError,
    QueueBusyError,
    create_http_exception,
    handle_pipeline_error,
)
from .utils.pipeline_core import PipelineExecutor

# Set up logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/pipeline", tags=["pipeline"])


def _get_queue(request: Request) -> PipelineQueue:
    return request.app.state.queue


def _queue_snapshot(queue: PipelineQueue) -> dict:
    return {
        "success": True,
        "running": queue.running,
        "items": [item.to_dict() for item in queue.items],
    }


def _log_progress(item_id: str, status: ItemStatus, error: Optional[str] = None,
                  upload_progress: Optional[int] = None):
    if status == ItemStatus.UPLOADING:
        logger.debug(f"Item {item_id}: uploading {upload_progress}%")
    elif status == ItemStatus.ERROR:
        logger.debug(f"Item {item_id}: error ({error})")
    else:
        logger.debug(f"Item {item_id}: {status.value}")


@router.post("/items")
async def enqueue_items(request: Request, files: List[UploadFile] = File(...)):
    """Add uploaded files to the end of the queue."""
    raw_files = [RawFile(name=upload.filename or "", content=await upload.read()) for upload in files]
    added = _get_queue(request).enqueue(raw_files)
    logger.info(f"Enqueued {len(added)} file(s)")
    return {"success": True, "items": [item.to_dict() for item in added]}


@router.get("/items")
async def list_items(request: Request):
    """Current queue order with live item statuses."""
    return _queue_snapshot(_get_queue(request))


@router.post("/items/{item_id}/move")
async def move_item(request: Request, item_id: str, new_index: int = Form(...)):
    """Move one item to a new position."""
    queue = _get_queue(request)
    try:
        queue.reorder(item_id, new_index)
    except QueueBusyError as e:
        raise create_http_exception(ErrorCode.PIPELINE_BUSY, details=e.message)
    except ItemNotFoundError as e:
        raise create_http_exception(ErrorCode.NOT_FOUND, details=e.message, item_id=item_id)
    return _queue_snapshot(queue)


@router.delete("/items/{item_id}")
async def remove_item(request: Request, item_id: str):
    """Remove an item; unknown ids are not an error."""
    queue = _get_queue(request)
    try:
        removed = queue.remove(item_id)
    except QueueBusyError as e:
        raise create_http_exception(ErrorCode.PIPELINE_BUSY, details=e.message)
    response = _queue_snapshot(queue)
    response["removed"] = removed
    return response


@router.post("/run")
async def run_pipeline(request: Request, compress: bool = Form(False)):
    """
    Merge the queued files into one PDF.

    Returns the document as an attachment, or a JSON error naming the item
    that stopped the run (``item_id`` is null for run-level failures).
    """
    queue = _get_queue(request)
    try:
        snapshot = queue.begin_run()
    except QueueBusyError as e:
        raise create_http_exception(ErrorCode.PIPELINE_BUSY, details=e.message)

    executor = PipelineExecutor(request.app.state.http_client, request.app.state.credentials)
    try:
        output = await executor.execute(snapshot, compress_output=compress, on_progress=_log_progress)
    except PipelineError as e:
        return handle_pipeline_error(e)
    finally:
        queue.end_run()

    return StreamingResponse(
        BytesIO(output),
        media_type=OUTPUT_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={OUTPUT_FILENAME}"}
    )


@router.get("/supported")
async def supported_formats():
    """Supported extensions grouped by handling strategy."""
    return {"success": True, "strategies": get_supported_formats()}
