"""
Attachment download.

GET /api/v1/attachments/{attachmentId}/download — Stream the stored file
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import attachments as attachment_service

router = APIRouter()


@router.get("/{attachmentId}/download")
async def download_attachment(
    attachmentId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    attachment, path = await attachment_service.open_attachment(attachmentId, principal, session)
    return FileResponse(path, media_type=attachment.mime_type, filename=attachment.filename)
