"""Attachment service: listing and authorized download. Upload happens elsewhere."""

from __future__ import annotations

import uuid
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import NotFoundError
from app.models.attachment import Attachment
from app.policy.access import Action, Principal, authorize
from app.services.context import load_attachment_resource
from app.services.tasks import authorized_task

log = structlog.get_logger()
settings = get_settings()


async def list_attachments(
    task_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[Attachment]:
    await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    result = await session.execute(
        select(Attachment).where(Attachment.task_id == task_id).order_by(Attachment.created_at)
    )
    return list(result.scalars().all())


def resolve_stored_path(relative: str) -> Path:
    """Absolute path of a stored file; anything outside ``upload_dir`` is treated as missing."""
    root = Path(settings.upload_dir).resolve()
    path = (root / relative).resolve()
    if root != path and root not in path.parents:
        raise NotFoundError("File not found")
    return path


async def open_attachment(
    attachment_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> tuple[Attachment, Path]:
    attachment, resource = await load_attachment_resource(session, attachment_id)
    authorize(principal, Action.VIEW_ATTACHMENT, resource)

    path = resolve_stored_path(attachment.path)
    if not path.is_file():
        log.warning("attachment.file_missing", attachment_id=str(attachment_id))
        raise NotFoundError("File not found")

    log.info("attachment.downloaded", attachment_id=str(attachment_id), user_id=str(principal.user_id))
    return attachment, path
