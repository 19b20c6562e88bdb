"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from taskhub_shared.schemas.common import GlobalRole, UserStatus

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: Optional[str] = None
    password_hash: Optional[str] = Field(default=None)  # None for invited placeholder accounts
    role: str = Field(default=GlobalRole.MEMBER.value, nullable=False)  # ADMIN | MANAGER | MEMBER | AGENT
    status: str = Field(default=UserStatus.ACTIVE.value, nullable=False)
