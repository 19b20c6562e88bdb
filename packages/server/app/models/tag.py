"""Tag model."""

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Tag(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tags"

    name: str = Field(unique=True, nullable=False, index=True)
    color: str = Field(default="#6b7280", nullable=False)
