"""
ARQ background task: remind team members of meetings starting soon.

Runs every 15 minutes; each meeting is reminded once (``reminder_sent_at``).
"""

from __future__ import annotations

from arq import cron
from arq.connections import RedisSettings

import structlog

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.logging import configure_logging
from app.services.meetings import remind_upcoming_meetings

log = structlog.get_logger()
settings = get_settings()


async def send_meeting_reminders(ctx: dict) -> int:
    """Returns the number of meetings reminded."""
    async with get_session_context() as session:
        count = await remind_upcoming_meetings(session)
    log.info("meeting_reminders.run", count=count)
    return count


async def startup(ctx: dict) -> None:
    configure_logging(settings.log_level, settings.log_format)


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [send_meeting_reminders]
    cron_jobs = [
        cron(send_meeting_reminders, minute={0, 15, 30, 45}),
    ]
    on_startup = startup
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
