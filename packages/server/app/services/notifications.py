"""
Notification service: persistence of fanout drafts and the recipient's inbox.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import NotFoundError
from app.models.notification import Notification
from app.policy.access import Principal
from app.policy.fanout import FanoutReport, NotificationDraft, deliver, fanout

log = structlog.get_logger()
settings = get_settings()


# ---------------------------------------------------------------------------
# Write contract used by fanout delivery
# ---------------------------------------------------------------------------

async def create_notification(session: AsyncSession, draft: NotificationDraft) -> Notification:
    """Insert one draft inside a SAVEPOINT so a failure leaves the request transaction usable."""
    async with session.begin_nested():
        notification = Notification(
            user_id=draft.recipient_id,
            title=draft.title,
            message=draft.message,
            type=draft.type.value,
            meta=draft.metadata,
        )
        session.add(notification)
    return notification


async def deliver_drafts(session: AsyncSession, drafts: list[NotificationDraft]) -> FanoutReport:
    return await deliver(drafts, lambda draft: create_notification(session, draft))


async def notify(session: AsyncSession, event) -> FanoutReport:
    """Fan an event out and persist every resulting draft."""
    return await deliver_drafts(session, fanout(event))


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

def clamp_page(page: int, limit: int) -> tuple[int, int]:
    return max(page, 1), min(max(limit, 1), settings.notification_page_size_max)


async def list_notifications(
    principal: Principal, session: AsyncSession, *, page: int = 1, limit: int = 20
) -> tuple[list[Notification], int, int, int]:
    """Newest first. Returns (items, total, page, limit)."""
    page, limit = clamp_page(page, limit)
    total = (
        await session.execute(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == principal.user_id
            )
        )
    ).scalar_one()
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == principal.user_id)
        .order_by(Notification.created_at.desc(), Notification.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total, page, limit


async def mark_notifications(
    principal: Principal, ids: list[uuid.UUID], read: bool, session: AsyncSession
) -> int:
    """Set ``read`` on the caller's own notifications; other ids are ignored."""
    result = await session.execute(
        update(Notification)
        .where(Notification.id.in_(ids), Notification.user_id == principal.user_id)
        .values(read=read)
        .execution_options(synchronize_session=False)
    )
    log.info("notification.marked", user_id=str(principal.user_id), count=result.rowcount, read=read)
    return result.rowcount


async def delete_notification(
    principal: Principal, notification_id: uuid.UUID, session: AsyncSession
) -> None:
    notification = await session.get(Notification, notification_id)
    # Someone else's notification is indistinguishable from a missing one
    if notification is None or notification.user_id != principal.user_id:
        raise NotFoundError("Notification not found")
    await session.delete(notification)
    await session.flush()


async def unread_count(principal: Principal, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == principal.user_id,
            Notification.read == False,  # noqa: E712
        )
    )
    return result.scalar_one()
