"""
Departmental reporting endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from aderm.api.v1.deps import get_context, get_current_user
from aderm.core.context import AppContext
from aderm.db.schemas import SendReportBody, UserProfile

router = APIRouter(tags=["Reports"])


@router.post("/send-report")
async def send_report(
    body: SendReportBody,
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Email a freeform departmental report. Delivery failure is a 500."""
    record = await ctx.reports.send_report(
        current_user,
        to=body.to,
        subject=body.subject,
        message=body.message,
        report_content=body.reportContent,
    )
    return {"success": True, "message": "Report sent successfully", "email_id": record.id}


@router.get("/reports/departments")
def department_report(
    department: Optional[str] = Query(None, description="Only this department"),
    date_from: Optional[date] = Query(None, alias="from", description="Created on or after (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, alias="to", description="Created on or before (YYYY-MM-DD)"),
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    summaries = ctx.reports.department_summary(
        current_user, department=department, date_from=date_from, date_to=date_to
    )
    return {"departments": summaries}


@router.get("/emails")
def list_emails(
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """50 most recent dispatch attempts, sent or failed."""
    return {"emails": ctx.reports.list_emails(current_user)}
