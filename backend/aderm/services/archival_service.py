"""
Pushes approved documents to the SharePoint archive through a Power Automate
HTTP flow.

Providers (ARCHIVE_PROVIDER):
  dev            -> log only
  power_automate -> POST JSON to ARCHIVE_FLOW_URL
  disabled       -> skip
"""

from __future__ import annotations

import base64
import logging
from typing import Dict, Optional

import httpx

from aderm.db.schemas import AuditRequest, Document
from aderm.services.storage_service import BlobStorage
from aderm.utils.exceptions import ArchiveError

logger = logging.getLogger(__name__)


class ArchivalService:
    def __init__(
        self,
        storage: BlobStorage,
        provider: str = "dev",
        flow_url: str = "",
        shared_secret: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.storage = storage
        self.provider = (provider or "dev").strip().lower()
        self.flow_url = (flow_url or "").strip()
        self.shared_secret = (shared_secret or "").strip()
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.provider != "disabled"

    def build_payload(self, request: AuditRequest, document: Document, content: bytes) -> Dict[str, str]:
        return {
            "fileName": document.filename,
            "fileContentBase64": base64.b64encode(content).decode("ascii"),
            "requestId": request.id,
            "department": request.department,
            "auditeeEmail": request.assigned_to_email,
            "uploadedAt": document.uploaded_at.isoformat(),
        }

    async def archive_document(self, request: AuditRequest, document: Document) -> Dict[str, str]:
        """Raises ArchiveError when the blob cannot be read or the flow refuses it."""
        if self.provider == "disabled":
            return {"provider": "disabled", "document_id": document.id}

        try:
            content = self.storage.download(document.file_path)
        except Exception as exc:
            raise ArchiveError(f"Could not read {document.file_path}: {exc}") from exc
        payload = self.build_payload(request, document, content)

        if self.provider == "dev":
            logger.info(
                "[DEV ARCHIVE] request=%s file=%s bytes=%d department=%s",
                request.id,
                document.filename,
                len(content),
                request.department,
            )
            return {"provider": "dev", "document_id": document.id}

        if self.provider == "power_automate":
            if not self.flow_url:
                raise ArchiveError("Archive config missing (ARCHIVE_FLOW_URL)")
            headers = {"Content-Type": "application/json"}
            if self.shared_secret:
                headers["x-shared-secret"] = self.shared_secret
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(self.flow_url, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise ArchiveError(f"Archive request failed: {exc.__class__.__name__}: {exc}") from exc
            if resp.status_code >= 400:
                raise ArchiveError(f"Archive flow failed: {resp.status_code} {resp.text[:200]}")
            return {"provider": "power_automate", "document_id": document.id}

        raise ArchiveError(f"Unsupported ARCHIVE_PROVIDER: {self.provider}")
