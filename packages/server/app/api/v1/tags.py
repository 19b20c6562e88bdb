"""
Tag endpoints.

GET  /api/v1/tags — All tags
POST /api/v1/tags — Create a tag (names are unique, case-insensitive)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import tags as tag_service
from taskhub_shared.schemas.tasks import TagCreate, TagRead

router = APIRouter()


@router.get("", response_model=list[TagRead])
async def list_tags(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await tag_service.list_tags(session)


@router.post("", response_model=TagRead, status_code=201)
async def create_tag(
    body: TagCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await tag_service.create_tag(body, principal, session)
