"""
Search API endpoint.

GET    /api/v1/search?q=                    — Tasks, projects and users the caller can see
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import projects as project_service
from app.services import search as search_service
from app.services import tasks as task_service
from taskhub_shared.schemas.search import SearchResults
from taskhub_shared.schemas.users import UserResponse

router = APIRouter()


@router.get("", response_model=SearchResults)
async def search(
    q: str = Query("", max_length=200),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    tasks, projects, users = await search_service.search(q, principal, session)
    return SearchResults(
        tasks=await task_service.serialize_tasks(tasks, session),
        projects=[await project_service.serialize_project(p, session) for p in projects],
        users=[UserResponse.model_validate(u) for u in users],
    )
