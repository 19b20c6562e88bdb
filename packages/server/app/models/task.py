"""Task model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskhub_shared.schemas.common import TaskPriority, TaskStatus

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    title: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(default=TaskStatus.TODO.value, nullable=False)  # TODO | IN_PROGRESS | IN_REVIEW | DONE
    priority: str = Field(default=TaskPriority.MEDIUM.value, nullable=False)
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    project_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        ),
    )
    creator_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
