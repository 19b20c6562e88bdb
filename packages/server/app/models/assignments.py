"""Task join tables: assignees, watchers and tags."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _task_fk() -> sa.Column:
    return sa.Column(
        sa.Uuid,
        sa.ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    )


class TaskAssignee(SQLModel, table=True):
    __tablename__ = "task_assignees"

    task_id: uuid.UUID = Field(sa_column=_task_fk())
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)


class TaskWatcher(SQLModel, table=True):
    __tablename__ = "task_watchers"

    task_id: uuid.UUID = Field(sa_column=_task_fk())
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)


class TaskTag(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: uuid.UUID = Field(sa_column=_task_fk())
    tag_id: uuid.UUID = Field(foreign_key="tags.id", primary_key=True)
