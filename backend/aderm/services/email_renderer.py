from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from aderm.db.schemas import AuditRequest, OTPPurpose, RequestStatus, UserProfile
from aderm.utils.helpers import utcnow

_HEADER_STYLE = "background-color:#1e40af;color:white;padding:20px;text-align:center;"
_BODY_TEXT = "color:#374151;font-size:16px;line-height:1.6;"
_PANEL_STYLE = "background-color:#f3f4f6;padding:20px;border-radius:8px;margin:20px 0;"
_FOOTER_STYLE = "background-color:#f9fafb;padding:20px;text-align:center;border-top:1px solid #e5e7eb;"

_STATUS_COLORS = {
    RequestStatus.submitted.value: "#1e40af",
    RequestStatus.in_progress.value: "#92400e",
    RequestStatus.rejected.value: "#991b1b",
    RequestStatus.approved.value: "#166534",
}


@dataclass
class RenderedEmail:
    subject: str
    html: str
    to: list[str]
    cc: list[str] = field(default_factory=list)
    email_type: str = "notification"
    # stored in the EmailRecord instead of html when set
    record_body: Optional[str] = None


def _stamp(now: Optional[datetime]) -> str:
    return (now or utcnow()).strftime("%Y-%m-%d %H:%M UTC")


def _layout(tagline: str, body: str, footer: str, now: Optional[datetime]) -> str:
    return (
        "<div style='font-family:Arial,sans-serif;max-width:600px;margin:0 auto;background-color:#ffffff;'>"
        f"<div style='{_HEADER_STYLE}'>"
        "<h1 style='margin:0;font-size:24px;'>ADERM Platform</h1>"
        f"<p style='margin:5px 0 0 0;'>{html.escape(tagline)}</p>"
        "</div>"
        f"<div style='padding:30px 20px;'>{body}</div>"
        f"<div style='{_FOOTER_STYLE}'>"
        f"<p style='color:#6b7280;font-size:12px;margin:0;'>{html.escape(footer)}</p>"
        f"<p style='color:#6b7280;font-size:12px;margin:5px 0 0 0;'>{html.escape(_stamp(now))}</p>"
        "</div>"
        "</div>"
    )


def _details(title: str, rows: list[tuple[str, str]]) -> str:
    items = "".join(
        f"<li><strong>{html.escape(label)}:</strong> {html.escape(value)}</li>" for label, value in rows
    )
    return (
        f"<div style='{_PANEL_STYLE}'>"
        f"<h3 style='color:#1f2937;margin:0 0 15px 0;'>{html.escape(title)}</h3>"
        "<ul style='color:#374151;font-size:15px;line-height:1.6;list-style-type:none;padding:0;margin:0;'>"
        f"{items}</ul></div>"
    )


def _status_badge(status: str) -> str:
    color = _STATUS_COLORS.get(status, "#374151")
    label = status.replace("_", " ").title()
    return (
        f"<span style='padding:2px 8px;border-radius:999px;font-size:12px;color:{color};"
        f"border:1px solid {color};'>{html.escape(label)}</span>"
    )


def _paragraph(text: str) -> str:
    return f"<p style='{_BODY_TEXT}'>{html.escape(text)}</p>"


def render_new_request(
    request: AuditRequest,
    creator: UserProfile,
    app_url: str = "",
    now: Optional[datetime] = None,
) -> RenderedEmail:
    """Sent to the assignee, CC'ing the request's cc list."""
    body = (
        _paragraph("Hello,")
        + _paragraph("You have been assigned a new audit request:")
        + _details(
            "Request Details",
            [
                ("Title", request.title),
                ("Description", request.description),
                ("Due Date", request.due_date.isoformat()),
                ("Department", request.department),
                ("Requested by", creator.name),
            ],
        )
        + _paragraph("Please log in to the ADERM system to view and respond to this request.")
    )
    if app_url:
        body += f"<p style='{_BODY_TEXT}'><a href='{html.escape(app_url)}'>Open ADERM</a></p>"
    return RenderedEmail(
        subject=f"New Audit Request: {request.title}",
        html=_layout("New Audit Request Assigned", body, "This notification was sent by the ADERM platform", now),
        to=[request.assigned_to_email],
        cc=[c for c in request.cc_emails if c.lower() != request.assigned_to_email.lower()],
        email_type="new_request",
    )


def render_status_change(
    request: AuditRequest,
    old_status: str,
    updater: UserProfile,
    auditor_email: Optional[str],
    now: Optional[datetime] = None,
) -> RenderedEmail:
    """
    Recipient depends on the new status:

    * submitted          -> the auditor who created the request
    * approved, rejected -> the auditee
    * anything else      -> the auditee, generic wording
    """
    new_status = request.status.value if isinstance(request.status, RequestStatus) else str(request.status)
    rows = [
        ("Title", request.title),
        ("Department", request.department),
        ("Previous Status", old_status.replace("_", " ").title()),
        ("Updated by", updater.name),
    ]

    if new_status == RequestStatus.submitted.value and auditor_email:
        recipient = auditor_email
        tagline = "Request Submitted For Review"
        intro = "An audit request you created has been submitted for your review:"
        email_type = "status_submitted"
    elif new_status in (RequestStatus.approved.value, RequestStatus.rejected.value):
        recipient = request.assigned_to_email
        verdict = "approved" if new_status == RequestStatus.approved.value else "rejected"
        tagline = f"Request {verdict.title()}"
        intro = f"Your audit request has been {verdict}:"
        email_type = f"status_{verdict}"
    else:
        recipient = request.assigned_to_email
        tagline = "Request Status Updated"
        intro = "The status of your audit request has been updated:"
        email_type = "status_update"

    body = (
        _paragraph("Hello,")
        + _paragraph(intro)
        + _details("Request Details", rows)
        + f"<p style='{_BODY_TEXT}'><strong>New Status:</strong> {_status_badge(new_status)}</p>"
        + _paragraph("Please log in to the ADERM system to view more details and take any necessary actions.")
    )
    return RenderedEmail(
        subject=f"Request Status Updated: {request.title}",
        html=_layout(tagline, body, "This notification was sent by the ADERM platform", now),
        to=[recipient],
        email_type=email_type,
    )


def render_welcome(user: UserProfile, now: Optional[datetime] = None) -> RenderedEmail:
    body = (
        _paragraph(f"Hello {user.name},")
        + _paragraph(
            "Your account has been successfully created in the "
            "Audit Document Exchange & Request Management (ADERM) system."
        )
        + _details("Your Account Details", [("Email", user.email), ("Role", user.role.value)])
        + _paragraph("You can now log in using your email address and a one-time verification code.")
    )
    return RenderedEmail(
        subject="Welcome to ADERM - Audit Document Exchange & Request Management",
        html=_layout("Welcome to ADERM!", body, "This account was created on the ADERM platform", now),
        to=[user.email],
        email_type="welcome",
    )


def render_otp(
    email: str,
    code: str,
    purpose: OTPPurpose,
    ttl_minutes: int = 10,
    now: Optional[datetime] = None,
) -> RenderedEmail:
    is_signup = purpose == OTPPurpose.signup
    label = "Email Verification Code" if is_signup else "Login Verification Code"
    body = (
        _paragraph("Hello,")
        + _paragraph(f"Your {'email verification' if is_signup else 'login'} code for ADERM is below.")
        + f"<div style='{_PANEL_STYLE}text-align:center;'>"
        "<h3 style='color:#1f2937;margin:0 0 15px 0;'>Your Verification Code</h3>"
        "<div style='font-size:32px;font-weight:bold;color:#1e40af;letter-spacing:8px;font-family:monospace;'>"
        f"{html.escape(code)}</div>"
        f"<p style='color:#6b7280;font-size:14px;margin:15px 0 0 0;'>This code expires in {int(ttl_minutes)} minutes</p>"
        "</div>"
        "<div style='background-color:#fef3c7;border-left:4px solid #f59e0b;padding:15px;margin:20px 0;'>"
        "<h4 style='color:#92400e;margin:0 0 10px 0;'>SECURITY NOTICE</h4>"
        "<ul style='color:#92400e;margin:0;padding-left:20px;'>"
        "<li>Do not share this code with anyone</li>"
        "<li>ADERM staff will never ask for your verification code</li>"
        "<li>If you didn't request this code, ignore this email</li>"
        "</ul></div>"
    )
    return RenderedEmail(
        subject=f"ADERM - {label}",
        html=_layout(label, body, "This verification code was sent by the ADERM platform", now),
        to=[email],
        email_type=f"{purpose.value}_otp",
        record_body=f"{label} sent to {email}",
    )


def render_report(
    to: str,
    subject: str,
    message: str,
    report_content: str,
    sender: UserProfile,
    now: Optional[datetime] = None,
) -> RenderedEmail:
    parts = []
    if message:
        parts.append(f"<p>{html.escape(message)}</p>")
    parts.append("<h3>ADERM Departmental Analysis Report</h3>")
    parts.append(f"<pre style='font-family:monospace;white-space:pre-wrap;'>{html.escape(report_content)}</pre>")
    parts.append(
        f"<p style='color:#6b7280;font-size:12px;'>Sent by {html.escape(sender.name)} "
        f"({html.escape(sender.email)}) | Generated {html.escape(_stamp(now))}</p>"
    )
    return RenderedEmail(
        subject=subject,
        html="<div style='font-family:Arial,sans-serif;'>" + "".join(parts) + "</div>",
        to=[to],
        email_type="departmental_report",
    )
