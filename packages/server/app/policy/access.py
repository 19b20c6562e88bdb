"""
Access control evaluator.

``can_perform`` is a pure function: given the caller, an action and a loaded
resource view, it returns ``Allow`` or ``Deny(reason)``. It never touches the
database; callers load the resource (plus the caller's own membership row)
through ``app.services.context`` and pass ``None`` when nothing was found.

Evaluation order:
1. no principal            -> Unauthorized
2. no resource             -> NotFound
3. owner-protected target  -> CannotRemoveOwner (even for global ADMIN)
4. no global/scoped grant  -> Forbidden
5. admin key missing/wrong -> MissingCredential
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from app.core.security import verify_admin_key
from app.core.errors import (
    CannotRemoveOwnerError,
    ForbiddenError,
    InvalidCredentialError,
    NotFoundError,
    UnauthorizedError,
)
from taskhub_shared.schemas.common import (
    GLOBAL_ROLE_ORDER,
    ORG_ROLE_ORDER,
    TEAM_ROLE_ORDER,
    GlobalRole,
    MembershipStatus,
    OrgRole,
    TeamRole,
)


# ---------------------------------------------------------------------------
# Principal & actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: uuid.UUID
    global_role: GlobalRole
    email: str = ""
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


class Action(str, Enum):
    VIEW_ORG = "ViewOrg"
    UPDATE_ORG = "UpdateOrg"
    DELETE_ORG = "DeleteOrg"
    INVITE_ORG_MEMBER = "InviteOrgMember"
    ROTATE_ORG_KEY = "RotateOrgKey"
    VIEW_TEAM = "ViewTeam"
    UPDATE_TEAM = "UpdateTeam"
    UPDATE_TEAM_MEMBERSHIP = "UpdateTeamMembership"
    REMOVE_TEAM_MEMBER = "RemoveTeamMember"
    INVITE_TEAM_MEMBER = "InviteTeamMember"
    CREATE_MEETING = "CreateMeeting"
    CANCEL_MEETING = "CancelMeeting"
    VIEW_MEETING = "ViewMeeting"
    VIEW_PROJECT = "ViewProject"
    ADD_PROJECT_MEMBER = "AddProjectMember"
    UPDATE_PROJECT = "UpdateProject"
    DELETE_PROJECT = "DeleteProject"
    VIEW_TASK = "ViewTask"
    COMMENT_ON_TASK = "CommentOnTask"
    DELETE_TASK = "DeleteTask"
    VIEW_ATTACHMENT = "ViewAttachment"


class Reason(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    MISSING_CREDENTIAL = "MissingCredential"
    CANNOT_REMOVE_OWNER = "CannotRemoveOwner"


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: Reason
    message: str = ""


ALLOW = Allow()
Decision = Union[Allow, Deny]

# Scoped minimums for scopes where the grant is a yes/no fact
MEMBERSHIP = "MEMBERSHIP"
CREATOR = "CREATOR"


def _rank(order: list, role) -> int:
    try:
        return order.index(role)
    except ValueError:
        return -1


# ---------------------------------------------------------------------------
# Resource views (entity + the caller's own membership facts)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrgResource:
    org_id: uuid.UUID
    admin_key_hash: str
    caller_role: Optional[OrgRole] = None

    def grants(self, principal: Principal, minimum: str) -> bool:
        if self.caller_role is None:
            return False
        return _rank(ORG_ROLE_ORDER, self.caller_role) >= _rank(ORG_ROLE_ORDER, minimum)


@dataclass(frozen=True)
class TeamResource:
    team_id: uuid.UUID
    owner_id: uuid.UUID
    caller_role: Optional[TeamRole] = None
    caller_status: Optional[MembershipStatus] = None
    target_role: Optional[TeamRole] = None  # membership being mutated, if any

    def grants(self, principal: Principal, minimum: str) -> bool:
        if principal.user_id == self.owner_id:
            return True
        if self.caller_role is None or self.caller_status != MembershipStatus.ACTIVE:
            return False
        return _rank(TEAM_ROLE_ORDER, self.caller_role) >= _rank(TEAM_ROLE_ORDER, minimum)


@dataclass(frozen=True)
class ProjectResource:
    project_id: uuid.UUID
    is_direct_member: bool = False
    is_team_member: bool = False  # ACTIVE member of the owning team

    def grants(self, principal: Principal, minimum: str) -> bool:
        return self.is_direct_member or self.is_team_member


@dataclass(frozen=True)
class TaskResource:
    """A task is visible through its project, or to its people when it has none."""

    task_id: uuid.UUID
    creator_id: uuid.UUID
    assignee_ids: frozenset = frozenset()
    project: Optional[ProjectResource] = None

    def grants(self, principal: Principal, minimum: str) -> bool:
        if minimum == CREATOR:
            return principal.user_id == self.creator_id
        if self.project is not None:
            return self.project.grants(principal, minimum)
        return principal.user_id == self.creator_id or principal.user_id in self.assignee_ids


@dataclass(frozen=True)
class AttachmentResource:
    attachment_id: uuid.UUID
    task_creator_id: uuid.UUID
    assignee_ids: frozenset = frozenset()

    def grants(self, principal: Principal, minimum: str) -> bool:
        return principal.user_id == self.task_creator_id or principal.user_id in self.assignee_ids


Resource = Union[OrgResource, TeamResource, ProjectResource, TaskResource, AttachmentResource]


# ---------------------------------------------------------------------------
# Policy table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    resource: type
    min_scoped: Optional[str]  # None: no scoped grant, only the global role can pass
    min_global: GlobalRole
    requires_admin_key: bool = False
    protects_owner: bool = False


_ORG_VIEW = Rule(OrgResource, OrgRole.MEMBER, GlobalRole.ADMIN)
_ORG_MANAGE = Rule(OrgResource, OrgRole.ADMIN, GlobalRole.ADMIN)
_TEAM_VIEW = Rule(TeamResource, TeamRole.MEMBER, GlobalRole.ADMIN)
_TEAM_MUTATE = Rule(TeamResource, TeamRole.ADMIN, GlobalRole.ADMIN)

POLICY: dict[Action, Rule] = {
    Action.VIEW_ORG: _ORG_VIEW,
    Action.UPDATE_ORG: _ORG_MANAGE,
    Action.INVITE_ORG_MEMBER: _ORG_MANAGE,
    Action.ROTATE_ORG_KEY: _ORG_MANAGE,
    Action.DELETE_ORG: Rule(OrgResource, OrgRole.ADMIN, GlobalRole.ADMIN, requires_admin_key=True),
    Action.VIEW_TEAM: _TEAM_VIEW,
    Action.VIEW_MEETING: _TEAM_VIEW,
    Action.UPDATE_TEAM: _TEAM_MUTATE,
    Action.UPDATE_TEAM_MEMBERSHIP: _TEAM_MUTATE,
    Action.INVITE_TEAM_MEMBER: _TEAM_MUTATE,
    Action.CREATE_MEETING: _TEAM_MUTATE,
    Action.CANCEL_MEETING: _TEAM_MUTATE,
    Action.REMOVE_TEAM_MEMBER: Rule(TeamResource, TeamRole.ADMIN, GlobalRole.ADMIN, protects_owner=True),
    Action.VIEW_PROJECT: Rule(ProjectResource, MEMBERSHIP, GlobalRole.MANAGER),
    Action.ADD_PROJECT_MEMBER: Rule(ProjectResource, None, GlobalRole.MANAGER),
    Action.UPDATE_PROJECT: Rule(ProjectResource, None, GlobalRole.ADMIN),
    Action.DELETE_PROJECT: Rule(ProjectResource, None, GlobalRole.ADMIN),
    Action.VIEW_TASK: Rule(TaskResource, MEMBERSHIP, GlobalRole.MANAGER),
    Action.COMMENT_ON_TASK: Rule(TaskResource, MEMBERSHIP, GlobalRole.MANAGER),
    Action.DELETE_TASK: Rule(TaskResource, CREATOR, GlobalRole.ADMIN),
    Action.VIEW_ATTACHMENT: Rule(AttachmentResource, MEMBERSHIP, GlobalRole.MANAGER),
}


def has_global_role(principal: Principal, minimum: GlobalRole) -> bool:
    return _rank(GLOBAL_ROLE_ORDER, principal.global_role) >= _rank(GLOBAL_ROLE_ORDER, minimum)


def require_global_role(principal: Principal, minimum: GlobalRole) -> None:
    if not has_global_role(principal, minimum):
        raise ForbiddenError(f"Requires global role {minimum.value} or higher")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def can_perform(
    principal: Optional[Principal],
    action: Action,
    resource: Optional[Resource],
    *,
    admin_key: Optional[str] = None,
) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on ``resource``."""
    rule = POLICY[action]

    if principal is None:
        return Deny(Reason.UNAUTHORIZED, "Authentication required")
    if resource is None:
        return Deny(Reason.NOT_FOUND, "Resource not found")
    if not isinstance(resource, rule.resource):
        raise TypeError(f"{action.value} expects {rule.resource.__name__}, got {type(resource).__name__}")

    if rule.protects_owner and getattr(resource, "target_role", None) == TeamRole.OWNER:
        return Deny(Reason.CANNOT_REMOVE_OWNER, "The team owner cannot be removed")

    allowed = has_global_role(principal, rule.min_global) or (
        rule.min_scoped is not None and resource.grants(principal, rule.min_scoped)
    )
    if not allowed:
        return Deny(Reason.FORBIDDEN, f"Not permitted to {action.value}")

    if rule.requires_admin_key:
        if not admin_key:
            return Deny(Reason.MISSING_CREDENTIAL, "Admin key is required for this action")
        if not verify_admin_key(admin_key, resource.admin_key_hash):
            return Deny(Reason.MISSING_CREDENTIAL, "Invalid admin key")

    return ALLOW


_REASON_ERRORS = {
    Reason.UNAUTHORIZED: UnauthorizedError,
    Reason.FORBIDDEN: ForbiddenError,
    Reason.NOT_FOUND: NotFoundError,
    Reason.MISSING_CREDENTIAL: InvalidCredentialError,
    Reason.CANNOT_REMOVE_OWNER: CannotRemoveOwnerError,
}


def enforce(decision: Decision) -> None:
    """Raise the domain error matching a ``Deny``; return quietly on ``Allow``."""
    if isinstance(decision, Deny):
        raise _REASON_ERRORS[decision.reason](decision.message or None)


def authorize(
    principal: Optional[Principal],
    action: Action,
    resource: Optional[Resource],
    *,
    admin_key: Optional[str] = None,
) -> None:
    enforce(can_perform(principal, action, resource, admin_key=admin_key))
