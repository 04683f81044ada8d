from fastapi import APIRouter, Depends

from aderm.api.v1.deps import get_context, get_current_user
from aderm.core.context import AppContext
from aderm.db.schemas import UserProfile

router = APIRouter(tags=["Audit"])


@router.get("/audit-logs")
def list_audit_logs(
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Newest first. Auditors and managers only."""
    return {"logs": ctx.audit.list(current_user)}
