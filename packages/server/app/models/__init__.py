# SQLModel definitions — imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization, OrganizationMember  # noqa: F401
from .team import Team, TeamMembership  # noqa: F401
from .project import Project, ProjectMember  # noqa: F401
from .task import Task  # noqa: F401
from .tag import Tag  # noqa: F401
from .assignments import TaskAssignee, TaskTag, TaskWatcher  # noqa: F401
from .comment import Comment  # noqa: F401
from .attachment import Attachment  # noqa: F401
from .notification import Notification  # noqa: F401
from .meeting import Meeting  # noqa: F401
