from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from aderm.core.logger import logger
from aderm.utils.exceptions import EmailDeliveryError
from aderm.utils.validators import is_valid_email

RESEND_API_URL = "https://api.resend.com/emails"


class EmailService:
    """Transactional email sender with a provider toggle (dev | resend)."""

    def __init__(
        self,
        provider: str = "dev",
        api_key: str = "",
        sender: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = (provider or "dev").strip().lower()
        self.api_key = (api_key or "").strip()
        self.sender = (sender or "").strip()
        self.timeout = timeout
        self._transport = transport
        # dev provider keeps what it "sent" so the messages can be inspected
        self.sent_messages: List[Dict[str, object]] = []

    async def send_email(
        self,
        to: List[str],
        subject: str,
        html: str,
        cc: Optional[List[str]] = None,
    ) -> Dict[str, str]:
        recipients = [t.strip() for t in (to or []) if t and t.strip()]
        cc_list = [c.strip() for c in (cc or []) if c and c.strip()]
        if not recipients:
            raise EmailDeliveryError("No recipients provided")
        if not (subject or "").strip():
            raise EmailDeliveryError("Subject is required")
        if not (html or "").strip():
            raise EmailDeliveryError("Email body is required")
        invalid = [e for e in recipients + cc_list if not is_valid_email(e)]
        if invalid:
            raise EmailDeliveryError(f"Invalid email addresses: {', '.join(invalid)}")

        if self.provider == "dev":
            logger.info("[DEV EMAIL] to=%s cc=%s subject=%s", recipients, cc_list, subject)
            self.sent_messages.append({"to": recipients, "cc": cc_list, "subject": subject, "html": html})
            return {"provider": "dev", "target": ",".join(recipients)}

        if self.provider == "resend":
            if not self.api_key or not self.sender:
                raise EmailDeliveryError("Resend email config missing (RESEND_API_KEY/EMAIL_FROM)")
            payload: Dict[str, object] = {
                "from": self.sender,
                "to": recipients,
                "subject": subject.strip(),
                "html": html,
            }
            if cc_list:
                payload["cc"] = cc_list
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            }
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(RESEND_API_URL, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise EmailDeliveryError(f"Resend request failed: {exc.__class__.__name__}: {exc}") from exc
            if resp.status_code >= 400:
                raise EmailDeliveryError(
                    f"Resend email failed: {resp.status_code} {resp.text[:200]}",
                    status_code=resp.status_code,
                )
            message_id = ""
            try:
                message_id = str(resp.json().get("id", ""))
            except ValueError:
                pass
            return {"provider": "resend", "target": ",".join(recipients), "id": message_id}

        raise EmailDeliveryError(f"Unsupported EMAIL_PROVIDER: {self.provider}")
