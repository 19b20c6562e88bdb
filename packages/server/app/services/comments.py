"""Comment service. New comments fan out to task participants and mentioned users."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ValidationError
from app.models.comment import Comment
from app.models.user import User
from app.policy.access import Action, Principal
from app.policy.fanout import CommentAdded
from app.policy.mentions import extract_mentions
from app.services.notifications import notify
from app.services.tasks import authorized_task

log = structlog.get_logger()


async def list_comments(
    task_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[Comment]:
    await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    result = await session.execute(
        select(Comment).where(Comment.task_id == task_id).order_by(Comment.created_at, Comment.id)
    )
    return list(result.scalars().all())


async def mention_directory(content: str, session: AsyncSession) -> dict[str, uuid.UUID]:
    """Lower-cased email -> user id for every address mentioned in ``content``."""
    emails = {email.lower() for email in extract_mentions(content)}
    if not emails:
        return {}
    result = await session.execute(
        select(User.email, User.id).where(func.lower(User.email).in_(emails))
    )
    return {email.lower(): user_id for email, user_id in result.all()}


async def add_comment(
    task_id: uuid.UUID, content: str, principal: Principal, session: AsyncSession
) -> Comment:
    # Prior commenters are read before the new comment exists
    ctx = await authorized_task(task_id, Action.COMMENT_ON_TASK, principal, session)
    if not content or not content.strip():
        raise ValidationError("Comment content is required")

    comment = Comment(task_id=task_id, author_id=principal.user_id, content=content)
    session.add(comment)
    await session.flush()

    log.info("comment.added", task_id=str(task_id), comment_id=str(comment.id))
    await notify(
        session,
        CommentAdded(
            task_id=task_id,
            task_title=ctx.task.title,
            actor_id=principal.user_id,
            actor_name=principal.display_name,
            creator_id=ctx.task.creator_id,
            content=content,
            assignee_ids=ctx.assignee_ids,
            watcher_ids=ctx.watcher_ids,
            prior_commenter_ids=ctx.prior_commenter_ids,
            directory=await mention_directory(content, session),
        ),
    )
    return comment
