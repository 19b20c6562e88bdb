"""Task attachment metadata. File bytes live under ``settings.upload_dir``."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Attachment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "attachments"

    task_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    filename: str = Field(nullable=False)
    path: str = Field(nullable=False)  # relative to upload_dir
    mime_type: str = Field(default="application/octet-stream", nullable=False)
    size: int = Field(default=0, nullable=False)
    uploaded_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
