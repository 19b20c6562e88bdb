"""Notification model (owned by the recipient, written only by fanout)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (
        # unread-count and inbox badge lookups
        sa.Index("ix_notifications_user_unread", "user_id", postgresql_where=sa.text("NOT read")),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    title: str = Field(nullable=False)
    message: str = Field(sa_type=sa.Text, nullable=False)
    type: str = Field(nullable=False)
    read: bool = Field(default=False, nullable=False)
    # "metadata" is reserved on declarative classes, so the attribute is renamed
    meta: Optional[dict] = Field(
        default=None, sa_column=sa.Column("metadata", JSONType, nullable=True)
    )
