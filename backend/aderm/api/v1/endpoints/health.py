"""
Health and readiness checks
"""
from fastapi import APIRouter, Depends

from aderm.api.v1.deps import get_context
from aderm.core.context import AppContext
from aderm.core.logger import logger

router = APIRouter(tags=["Health"])


def _check_kv(ctx: AppContext) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        ctx.kv.get("health:ping")
        return "ok", f"{ctx.settings.KV_BACKEND} store reachable"
    except Exception as e:
        logger.exception("KV health check failed")
        return "error", f"KV: {str(e)}"


@router.get("/health")
def health(ctx: AppContext = Depends(get_context)):
    kv_status, kv_detail = _check_kv(ctx)
    return {
        "status": "healthy" if kv_status == "ok" else "degraded",
        "service": ctx.settings.APP_NAME,
        "kv": {"status": kv_status, "detail": kv_detail},
        "providers": {
            "storage": ctx.settings.STORAGE_PROVIDER,
            "email": ctx.settings.EMAIL_PROVIDER,
            "archive": ctx.settings.ARCHIVE_PROVIDER,
        },
        "outbox_pending": ctx.outbox.pending(),
    }
