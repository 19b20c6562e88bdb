"""Global search response."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from .projects import ProjectRead
from .tasks import TaskRead
from .users import UserResponse


class SearchResults(BaseModel):
    tasks: List[TaskRead] = Field(default_factory=list)
    projects: List[ProjectRead] = Field(default_factory=list)
    users: List[UserResponse] = Field(default_factory=list)
