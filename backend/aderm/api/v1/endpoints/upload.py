# backend/aderm/api/v1/endpoints/upload.py

"""
Upload Endpoints

Multipart upload of a document against a request.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile

from aderm.api.v1.deps import get_context, get_current_user
from aderm.core.context import AppContext
from aderm.core.logger import logger
from aderm.db.schemas import UserProfile
from aderm.utils.exceptions import ValidationError

READ_CHUNK_SIZE = 1024 * 1024

router = APIRouter(tags=["Upload"])


async def _read_limited(file: UploadFile, limit: int) -> bytes:
    """Read the upload in chunks, refusing it as soon as it passes ``limit`` bytes."""
    too_large = ValidationError(f"File exceeds the {limit // (1024 * 1024)} MB limit")
    if file.size is not None and file.size > limit:
        raise too_large
    chunks = []
    total = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise too_large
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload")
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    request_id: str = Form(...),
    comments: str = Form(""),
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """
    Store the file, attach it to the request and move the request to
    ``in_progress``. A pending request is claimed by the uploader when the
    assignee email matches.
    """
    content = await _read_limited(file, ctx.requests.max_upload_size)
    logger.info(f"Upload for request {request_id}: {file.filename} ({len(content)} bytes)")
    document = ctx.requests.upload_document(
        current_user,
        request_id,
        filename=file.filename or "",
        content=content,
        content_type=file.content_type,
        comments=comments,
    )
    background_tasks.add_task(ctx.outbox.drain)
    return {"document": document, "success": True}
