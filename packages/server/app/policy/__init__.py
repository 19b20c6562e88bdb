"""Access control, notification fanout and mention extraction."""

from .access import (  # noqa: F401
    ALLOW,
    Action,
    Allow,
    AttachmentResource,
    Deny,
    OrgResource,
    POLICY,
    Principal,
    ProjectResource,
    Reason,
    TaskResource,
    TeamResource,
    authorize,
    can_perform,
    enforce,
    has_global_role,
    require_global_role,
)
from .fanout import FanoutReport, NotificationDraft, deliver, fanout  # noqa: F401
from .mentions import Mentions, extract_mentions  # noqa: F401
