from enum import Enum

from pydantic import BaseModel


class GlobalRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"
    AGENT = "AGENT"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class OrgRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class TeamRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class NotificationType(str, Enum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_COMPLETED = "TASK_COMPLETED"
    COMMENT_ADDED = "COMMENT_ADDED"
    MENTION = "MENTION"
    TEAM_INVITATION = "TEAM_INVITATION"
    MEETING_INVITE = "MEETING_INVITE"
    SYSTEM = "SYSTEM"
    PROJECT_INVITE = "PROJECT_INVITE"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MeetingStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"


# Ordered lists, lowest privilege first
GLOBAL_ROLE_ORDER: list[GlobalRole] = [
    GlobalRole.AGENT,
    GlobalRole.MEMBER,
    GlobalRole.MANAGER,
    GlobalRole.ADMIN,
]

ORG_ROLE_ORDER: list[OrgRole] = [
    OrgRole.MEMBER,
    OrgRole.MANAGER,
    OrgRole.ADMIN,
    OrgRole.OWNER,
]

TEAM_ROLE_ORDER: list[TeamRole] = [
    TeamRole.MEMBER,
    TeamRole.ADMIN,
    TeamRole.OWNER,
]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    error: ErrorBody
