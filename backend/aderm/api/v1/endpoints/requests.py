"""
Document request endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends

from aderm.api.v1.deps import get_context, get_current_user
from aderm.core.context import AppContext
from aderm.db.schemas import CreateRequestBody, StatusUpdateBody, UserProfile

router = APIRouter(tags=["Requests"])


@router.post("/requests")
def create_request(
    body: CreateRequestBody,
    background_tasks: BackgroundTasks,
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Auditors and managers only. The assignee is emailed after the response."""
    request = ctx.requests.create_request(current_user, body)
    background_tasks.add_task(ctx.outbox.drain)
    return {"request": request, "success": True}


@router.get("/requests")
def list_requests(
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return {"requests": ctx.requests.list_requests(current_user)}


@router.put("/requests/{request_id}/status")
def update_request_status(
    request_id: str,
    body: StatusUpdateBody,
    background_tasks: BackgroundTasks,
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """
    Change status. Notification and, on approval, archival of the request's
    documents run after the response.
    """
    request = ctx.requests.update_status(current_user, request_id, body.status)
    background_tasks.add_task(ctx.outbox.drain)
    return {"request": request, "success": True}


@router.get("/requests/{request_id}/documents")
def list_request_documents(
    request_id: str,
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return {"documents": ctx.requests.list_documents(current_user, request_id)}
