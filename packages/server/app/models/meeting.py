"""Team meeting model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskhub_shared.schemas.common import MeetingStatus

from .base import TimestampMixin, UUIDMixin


class Meeting(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "meetings"

    team_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("teams.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    start_time: datetime = Field(sa_type=sa.DateTime(timezone=True), nullable=False, index=True)
    end_time: datetime = Field(sa_type=sa.DateTime(timezone=True), nullable=False)
    meet_link: Optional[str] = None
    status: str = Field(default=MeetingStatus.SCHEDULED.value, nullable=False)
    reminder_sent_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
