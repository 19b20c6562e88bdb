"""Team and team membership models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskhub_shared.schemas.common import MembershipStatus, TeamRole

from .base import TimestampMixin, UUIDMixin, utcnow


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"

    name: str = Field(nullable=False)
    description: Optional[str] = None
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id", index=True
    )


class TeamMembership(UUIDMixin, SQLModel, table=True):
    __tablename__ = "team_memberships"
    __table_args__ = (
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_memberships_team_user"),
    )

    team_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("teams.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(default=TeamRole.MEMBER.value, nullable=False)  # OWNER | ADMIN | MEMBER
    status: str = Field(default=MembershipStatus.PENDING.value, nullable=False)  # PENDING | ACTIVE
    invited_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    invited_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    token: Optional[str] = Field(default=None, index=True)  # single-use invitation secret
    joined_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
