"""Project and direct project membership models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    key: str = Field(unique=True, nullable=False, index=True)
    name: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(default="ACTIVE", nullable=False)
    organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id", index=True
    )
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")


class ProjectMember(SQLModel, table=True):
    __tablename__ = "project_members"

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    added_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
