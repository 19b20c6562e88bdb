"""Notification inbox schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .common import NotificationType, Pagination


class NotificationRead(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    read: bool
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class NotificationListResponse(Pagination):
    data: List[NotificationRead]


class NotificationMarkRequest(BaseModel):
    notification_ids: List[uuid.UUID] = Field(..., min_length=1)
    read: bool = True


class NotificationMarkResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    unread: int
