"""
Meeting service: scheduling, cancellation, re-sent invitations and reminders.

Calendar integration is out of scope; ``meet_link`` is stored as given.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import ConflictError, NotFoundError
from app.models.base import to_utc
from app.models.meeting import Meeting
from app.models.team import Team
from app.policy.access import Action, Principal
from app.policy.fanout import MeetingCancelled, MeetingReminder, MeetingScheduled
from app.services.context import active_team_member_ids
from app.services.notifications import notify
from app.services.teams import authorized_team
from taskhub_shared.schemas.common import MeetingStatus
from taskhub_shared.schemas.teams import MeetingCreate

log = structlog.get_logger()
settings = get_settings()


async def _team_meeting(
    team_id: uuid.UUID, meeting_id: uuid.UUID, session: AsyncSession
) -> Meeting:
    meeting = await session.get(Meeting, meeting_id)
    if meeting is None or meeting.team_id != team_id:
        raise NotFoundError("Meeting not found")
    return meeting


async def list_meetings(
    team_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[Meeting]:
    await authorized_team(team_id, Action.VIEW_MEETING, principal, session)
    result = await session.execute(
        select(Meeting).where(Meeting.team_id == team_id).order_by(Meeting.start_time)
    )
    return list(result.scalars().all())


async def get_meeting(
    team_id: uuid.UUID, meeting_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> Meeting:
    await authorized_team(team_id, Action.VIEW_MEETING, principal, session)
    return await _team_meeting(team_id, meeting_id, session)


async def create_meeting(
    team_id: uuid.UUID, req: MeetingCreate, principal: Principal, session: AsyncSession
) -> Meeting:
    ctx = await authorized_team(team_id, Action.CREATE_MEETING, principal, session)
    meeting = Meeting(
        team_id=team_id,
        created_by=principal.user_id,
        title=req.title,
        description=req.description,
        start_time=to_utc(req.start_time),
        end_time=to_utc(req.end_time),
        meet_link=req.meet_link,
    )
    session.add(meeting)
    await session.flush()

    log.info("meeting.scheduled", meeting_id=str(meeting.id), team_id=str(team_id))
    await notify(
        session,
        MeetingScheduled(
            team_id=team_id,
            meeting_id=meeting.id,
            title=meeting.title,
            start_time=meeting.start_time,
            actor_id=principal.user_id,
            actor_name=principal.display_name,
            member_ids=frozenset(await active_team_member_ids(session, ctx.team)),
        ),
    )
    return meeting


async def cancel_meeting(
    team_id: uuid.UUID, meeting_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> Meeting:
    ctx = await authorized_team(team_id, Action.CANCEL_MEETING, principal, session)
    meeting = await _team_meeting(team_id, meeting_id, session)
    if meeting.status == MeetingStatus.CANCELLED.value:
        raise ConflictError("Meeting is already cancelled")

    meeting.status = MeetingStatus.CANCELLED.value
    meeting.updated_at = datetime.now(timezone.utc)
    session.add(meeting)
    await session.flush()

    log.info("meeting.cancelled", meeting_id=str(meeting.id), team_id=str(team_id))
    await notify(
        session,
        MeetingCancelled(
            team_id=team_id,
            meeting_id=meeting.id,
            title=meeting.title,
            member_ids=frozenset(await active_team_member_ids(session, ctx.team)),
        ),
    )
    return meeting


async def resend_invites(
    team_id: uuid.UUID, meeting_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> int:
    """Send the MEETING_INVITE again to every ACTIVE member except the caller.

    Returns the number of notifications delivered.
    """
    ctx = await authorized_team(team_id, Action.VIEW_MEETING, principal, session)
    meeting = await _team_meeting(team_id, meeting_id, session)
    if meeting.status == MeetingStatus.CANCELLED.value:
        raise ConflictError("Meeting is cancelled")

    report = await notify(
        session,
        MeetingScheduled(
            team_id=team_id,
            meeting_id=meeting.id,
            title=meeting.title,
            start_time=meeting.start_time,
            actor_id=principal.user_id,
            actor_name=principal.display_name,
            member_ids=frozenset(await active_team_member_ids(session, ctx.team)),
        ),
    )
    log.info(
        "meeting.invites_resent",
        meeting_id=str(meeting.id),
        team_id=str(team_id),
        delivered=len(report.delivered),
    )
    return len(report.delivered)


async def remind_upcoming_meetings(
    session: AsyncSession,
    now: Optional[datetime] = None,
    lead_minutes: Optional[int] = None,
) -> int:
    """Send one reminder per scheduled meeting starting within the lead window.

    ``reminder_sent_at`` guards against sending twice. Returns the number of
    meetings reminded.
    """
    now = to_utc(now) or datetime.now(timezone.utc)
    lead = timedelta(minutes=lead_minutes or settings.meeting_reminder_lead_minutes)
    result = await session.execute(
        select(Meeting).where(
            Meeting.status == MeetingStatus.SCHEDULED.value,
            Meeting.reminder_sent_at.is_(None),
            Meeting.start_time >= now,
            Meeting.start_time <= now + lead,
        )
    )
    count = 0
    for meeting in result.scalars().all():
        team = await session.get(Team, meeting.team_id)
        if team is None:
            continue
        await notify(
            session,
            MeetingReminder(
                team_id=team.id,
                meeting_id=meeting.id,
                title=meeting.title,
                start_time=meeting.start_time,
                member_ids=frozenset(await active_team_member_ids(session, team)),
            ),
        )
        meeting.reminder_sent_at = now
        session.add(meeting)
        count += 1
    await session.flush()

    if count:
        log.info("meeting.reminders_sent", count=count)
    return count
