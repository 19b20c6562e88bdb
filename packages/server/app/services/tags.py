"""Tag service."""

from __future__ import annotations

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError
from app.models.tag import Tag
from app.policy.access import Principal
from taskhub_shared.schemas.tasks import TagCreate

log = structlog.get_logger()


async def list_tags(session: AsyncSession) -> list[Tag]:
    result = await session.execute(select(Tag).order_by(Tag.name))
    return list(result.scalars().all())


async def create_tag(req: TagCreate, principal: Principal, session: AsyncSession) -> Tag:
    name = req.name.strip()
    existing = await session.execute(select(Tag.id).where(func.lower(Tag.name) == name.lower()))
    if existing.first() is not None:
        raise ConflictError(f"Tag '{name}' already exists")

    tag = Tag(name=name, color=req.color)
    session.add(tag)
    await session.flush()
    log.info("tag.created", tag_id=str(tag.id), by=str(principal.user_id))
    return tag
