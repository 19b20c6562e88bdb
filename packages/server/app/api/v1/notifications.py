"""
Notification inbox endpoints. Callers only ever see their own rows.

GET    /api/v1/notifications                 — Paginated, newest first
PUT    /api/v1/notifications                 — Mark read/unread
GET    /api/v1/notifications/unread-count    — Unread count
DELETE /api/v1/notifications/{id}            — Delete one
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import notifications as notification_service
from taskhub_shared.schemas.notifications import (
    NotificationListResponse,
    NotificationMarkRequest,
    NotificationMarkResponse,
    NotificationRead,
    UnreadCountResponse,
)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    items, total, page, limit = await notification_service.list_notifications(
        principal, session, page=page, limit=limit
    )
    return NotificationListResponse(
        data=[
            NotificationRead(
                id=n.id,
                title=n.title,
                message=n.message,
                type=n.type,
                read=n.read,
                metadata=n.meta,
                created_at=n.created_at,
            )
            for n in items
        ],
        page=page,
        limit=limit,
        total=total,
    )


@router.put("", response_model=NotificationMarkResponse)
async def mark_notifications(
    body: NotificationMarkRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    updated = await notification_service.mark_notifications(
        principal, body.notification_ids, body.read, session
    )
    return NotificationMarkResponse(updated=updated)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return UnreadCountResponse(unread=await notification_service.unread_count(principal, session))


@router.delete("/{notificationId}", status_code=204)
async def delete_notification(
    notificationId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await notification_service.delete_notification(principal, notificationId, session)
