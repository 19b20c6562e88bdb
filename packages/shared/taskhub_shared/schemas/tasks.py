"""Task, comment, attachment and tag schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import UUID4

from .common import TaskPriority, TaskStatus


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None


class TaskCreate(TaskBase):
    project_id: Optional[UUID4] = None
    assignee_ids: List[UUID4] = Field(default_factory=list)
    tag_ids: List[UUID4] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assignee_ids: Optional[List[UUID4]] = None
    tag_ids: Optional[List[UUID4]] = None


class TaskRead(BaseModel):
    id: UUID4
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    project_id: Optional[UUID4] = None
    creator_id: UUID4
    assignee_ids: List[UUID4] = Field(default_factory=list)
    watcher_ids: List[UUID4] = Field(default_factory=list)
    tag_ids: List[UUID4] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class CommentCreate(BaseModel):
    content: str


class CommentRead(BaseModel):
    id: UUID4
    task_id: UUID4
    author_id: UUID4
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

class AttachmentRead(BaseModel):
    id: UUID4
    task_id: UUID4
    filename: str
    mime_type: str
    size: int
    uploaded_by: UUID4
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#6b7280", pattern=r"^#[0-9a-fA-F]{6}$")


class TagRead(BaseModel):
    id: UUID4
    name: str
    color: str
    created_at: datetime

    model_config = {"from_attributes": True}
