"""
Notification fanout.

``fanout(event)`` turns a domain event into the notification drafts it
produces. It is pure: recipients are computed from the ids carried on the
event, nothing is read or written. ``deliver`` then persists the drafts one
at a time through a caller-supplied ``create`` coroutine; a failed draft is
logged, recorded in the report and skipped.

Rules shared by every event:
- drafts are deduplicated per (recipient, type) within one event, first wins
- no deduplication across separate events
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import singledispatch
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

import structlog

from app.policy.mentions import extract_mentions
from taskhub_shared.schemas.common import NotificationType, TaskStatus

log = structlog.get_logger()


@dataclass(frozen=True)
class NotificationDraft:
    recipient_id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    metadata: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommentAdded:
    task_id: uuid.UUID
    task_title: str
    actor_id: uuid.UUID
    actor_name: str
    creator_id: uuid.UUID
    content: str
    assignee_ids: frozenset = frozenset()
    watcher_ids: frozenset = frozenset()
    prior_commenter_ids: frozenset = frozenset()
    # lower-cased email -> user id, for resolving mentions
    directory: Mapping[str, uuid.UUID] = field(default_factory=dict)


@dataclass(frozen=True)
class MentionDetected:
    task_id: uuid.UUID
    task_title: str
    actor_id: uuid.UUID
    actor_name: str
    mentioned_user_id: uuid.UUID


@dataclass(frozen=True)
class TeamInvited:
    team_id: uuid.UUID
    team_name: str
    invited_user_id: uuid.UUID
    membership_id: uuid.UUID
    inviter_name: str
    token: str


@dataclass(frozen=True)
class TeamInviteAccepted:
    team_id: uuid.UUID
    team_name: str
    accepting_user_id: uuid.UUID
    accepting_user_name: str
    admin_ids: frozenset = frozenset()  # ACTIVE OWNER/ADMIN members plus the team owner


@dataclass(frozen=True)
class TeamMemberRemoved:
    team_id: uuid.UUID
    team_name: str
    removed_user_id: uuid.UUID
    actor_id: uuid.UUID


@dataclass(frozen=True)
class MeetingScheduled:
    team_id: uuid.UUID
    meeting_id: uuid.UUID
    title: str
    start_time: datetime
    actor_id: uuid.UUID
    actor_name: str
    member_ids: frozenset = frozenset()


@dataclass(frozen=True)
class MeetingCancelled:
    team_id: uuid.UUID
    meeting_id: uuid.UUID
    title: str
    member_ids: frozenset = frozenset()


@dataclass(frozen=True)
class MeetingReminder:
    team_id: uuid.UUID
    meeting_id: uuid.UUID
    title: str
    start_time: datetime
    member_ids: frozenset = frozenset()


@dataclass(frozen=True)
class MemberAdded:
    kind: str  # "org" | "project"
    resource_id: uuid.UUID
    resource_name: str
    new_member_id: uuid.UUID
    actor_name: str


@dataclass(frozen=True)
class TaskCreated:
    task_id: uuid.UUID
    task_title: str
    actor_id: uuid.UUID
    actor_name: str
    assignee_ids: frozenset = frozenset()


@dataclass(frozen=True)
class TaskChanged:
    task_id: uuid.UUID
    task_title: str
    actor_id: uuid.UUID
    actor_name: str
    creator_id: uuid.UUID
    old_status: TaskStatus
    new_status: TaskStatus
    previous_assignee_ids: frozenset = frozenset()
    assignee_ids: frozenset = frozenset()
    watcher_ids: frozenset = frozenset()


@dataclass(frozen=True)
class TaskDeleted:
    task_id: uuid.UUID
    task_title: str
    actor_id: uuid.UUID
    actor_name: str
    creator_id: uuid.UUID
    assignee_ids: frozenset = frozenset()
    watcher_ids: frozenset = frozenset()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ordered(ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
    return sorted(set(ids), key=str)


def _dedupe(drafts: Iterable[NotificationDraft]) -> list[NotificationDraft]:
    seen: set[tuple[uuid.UUID, NotificationType]] = set()
    result = []
    for draft in drafts:
        key = (draft.recipient_id, draft.type)
        if key in seen:
            continue
        seen.add(key)
        result.append(draft)
    return result


def _fmt_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def resolve_mentions(
    content: str, directory: Mapping[str, uuid.UUID], actor_id: uuid.UUID
) -> list[uuid.UUID]:
    """Distinct user ids mentioned in ``content``; unknown and self mentions dropped."""
    resolved: list[uuid.UUID] = []
    for email in extract_mentions(content):
        user_id = directory.get(email.lower())
        if user_id is None or user_id == actor_id or user_id in resolved:
            continue
        resolved.append(user_id)
    return resolved


# ---------------------------------------------------------------------------
# fanout
# ---------------------------------------------------------------------------

@singledispatch
def fanout(event) -> list[NotificationDraft]:
    raise TypeError(f"No fanout rule for {type(event).__name__}")


@fanout.register
def _(event: MentionDetected) -> list[NotificationDraft]:
    if event.mentioned_user_id == event.actor_id:
        return []
    return [
        NotificationDraft(
            recipient_id=event.mentioned_user_id,
            title="You were mentioned",
            message=f'{event.actor_name} mentioned you in a comment on "{event.task_title}"',
            type=NotificationType.MENTION,
            metadata={"taskId": str(event.task_id)},
        )
    ]


@fanout.register
def _(event: CommentAdded) -> list[NotificationDraft]:
    mentioned = resolve_mentions(event.content, event.directory, event.actor_id)
    drafts: list[NotificationDraft] = []
    for user_id in mentioned:
        drafts.extend(
            fanout(
                MentionDetected(
                    task_id=event.task_id,
                    task_title=event.task_title,
                    actor_id=event.actor_id,
                    actor_name=event.actor_name,
                    mentioned_user_id=user_id,
                )
            )
        )

    candidates = (
        set(event.assignee_ids)
        | {event.creator_id}
        | set(event.watcher_ids)
        | set(event.prior_commenter_ids)
    )
    candidates -= {event.actor_id}
    candidates -= set(mentioned)
    for user_id in _ordered(candidates):
        drafts.append(
            NotificationDraft(
                recipient_id=user_id,
                title="New Comment",
                message=f'{event.actor_name} commented on "{event.task_title}"',
                type=NotificationType.COMMENT_ADDED,
                metadata={"taskId": str(event.task_id)},
            )
        )
    return _dedupe(drafts)


@fanout.register
def _(event: TeamInvited) -> list[NotificationDraft]:
    return [
        NotificationDraft(
            recipient_id=event.invited_user_id,
            title="Team Invitation",
            message=f'{event.inviter_name} invited you to join the team "{event.team_name}"',
            type=NotificationType.TEAM_INVITATION,
            metadata={
                "teamId": str(event.team_id),
                "membershipId": str(event.membership_id),
                "token": event.token,
            },
        )
    ]


@fanout.register
def _(event: TeamInviteAccepted) -> list[NotificationDraft]:
    metadata = {"teamId": str(event.team_id)}
    drafts = [
        NotificationDraft(
            recipient_id=admin_id,
            title="Invitation Accepted",
            message=f'{event.accepting_user_name} joined the team "{event.team_name}"',
            type=NotificationType.TEAM_INVITATION,
            metadata=metadata,
        )
        for admin_id in _ordered(set(event.admin_ids) - {event.accepting_user_id})
    ]
    drafts.append(
        NotificationDraft(
            recipient_id=event.accepting_user_id,
            title="Welcome to the Team",
            message=f'You are now a member of "{event.team_name}"',
            type=NotificationType.TEAM_INVITATION,
            metadata=metadata,
        )
    )
    return _dedupe(drafts)


@fanout.register
def _(event: TeamMemberRemoved) -> list[NotificationDraft]:
    if event.removed_user_id == event.actor_id:
        return []
    return [
        NotificationDraft(
            recipient_id=event.removed_user_id,
            title="Removed from Team",
            message=f'You have been removed from the team "{event.team_name}"',
            type=NotificationType.TEAM_INVITATION,
            metadata={"teamId": str(event.team_id)},
        )
    ]


@fanout.register
def _(event: MeetingScheduled) -> list[NotificationDraft]:
    metadata = {"meetingId": str(event.meeting_id), "teamId": str(event.team_id)}
    return [
        NotificationDraft(
            recipient_id=user_id,
            title="New Meeting Scheduled",
            message=f'{event.actor_name} scheduled "{event.title}" for {_fmt_time(event.start_time)}',
            type=NotificationType.MEETING_INVITE,
            metadata=metadata,
        )
        for user_id in _ordered(set(event.member_ids) - {event.actor_id})
    ]


@fanout.register
def _(event: MeetingCancelled) -> list[NotificationDraft]:
    # Everyone is told, the canceller included.
    metadata = {"meetingId": str(event.meeting_id), "teamId": str(event.team_id)}
    return [
        NotificationDraft(
            recipient_id=user_id,
            title="Meeting Cancelled",
            message=f'The meeting "{event.title}" has been cancelled',
            type=NotificationType.SYSTEM,
            metadata=metadata,
        )
        for user_id in _ordered(event.member_ids)
    ]


@fanout.register
def _(event: MeetingReminder) -> list[NotificationDraft]:
    metadata = {"meetingId": str(event.meeting_id), "teamId": str(event.team_id)}
    return [
        NotificationDraft(
            recipient_id=user_id,
            title="Meeting Reminder",
            message=f'"{event.title}" starts at {_fmt_time(event.start_time)}',
            type=NotificationType.SYSTEM,
            metadata=metadata,
        )
        for user_id in _ordered(event.member_ids)
    ]


@fanout.register
def _(event: MemberAdded) -> list[NotificationDraft]:
    if event.kind == "org":
        return [
            NotificationDraft(
                recipient_id=event.new_member_id,
                title="Added to Organization",
                message=f'{event.actor_name} added you to the organization "{event.resource_name}"',
                type=NotificationType.SYSTEM,
                metadata={"organizationId": str(event.resource_id)},
            )
        ]
    if event.kind == "project":
        return [
            NotificationDraft(
                recipient_id=event.new_member_id,
                title="Added to Project",
                message=f'{event.actor_name} added you to the project "{event.resource_name}"',
                type=NotificationType.PROJECT_INVITE,
                metadata={"projectId": str(event.resource_id)},
            )
        ]
    raise ValueError(f"Unknown membership kind: {event.kind}")


@fanout.register
def _(event: TaskCreated) -> list[NotificationDraft]:
    return [
        NotificationDraft(
            recipient_id=user_id,
            title="New Task Assigned",
            message=f'{event.actor_name} assigned you to "{event.task_title}"',
            type=NotificationType.TASK_ASSIGNED,
            metadata={"taskId": str(event.task_id)},
        )
        for user_id in _ordered(set(event.assignee_ids) - {event.actor_id})
    ]


@fanout.register
def _(event: TaskChanged) -> list[NotificationDraft]:
    metadata = {"taskId": str(event.task_id)}
    current = set(event.assignee_ids)
    previous = set(event.previous_assignee_ids)
    added = current - previous
    removed = previous - current
    status_changed = event.old_status != event.new_status
    drafts: list[NotificationDraft] = []

    def _to(ids, title, message, kind):
        for user_id in _ordered(set(ids) - {event.actor_id}):
            drafts.append(NotificationDraft(user_id, title, message, kind, metadata))

    if status_changed and event.new_status == TaskStatus.DONE:
        _to(
            previous | {event.creator_id},
            "Task Completed",
            f'"{event.task_title}" was marked as done by {event.actor_name}',
            NotificationType.TASK_COMPLETED,
        )
    elif status_changed:
        _to(
            current | {event.creator_id},
            "Task Status Updated",
            f'"{event.task_title}" moved to {TaskStatus(event.new_status).value}',
            NotificationType.TASK_UPDATED,
        )

    _to(
        added,
        "New Task Assigned",
        f'{event.actor_name} assigned you to "{event.task_title}"',
        NotificationType.TASK_ASSIGNED,
    )
    _to(
        removed,
        "Task Unassigned",
        f'You were unassigned from "{event.task_title}"',
        NotificationType.TASK_UPDATED,
    )

    if status_changed or added or removed:
        _to(
            set(event.watcher_ids) - current - {event.creator_id},
            "Task Updated",
            f'"{event.task_title}" was updated by {event.actor_name}',
            NotificationType.TASK_UPDATED,
        )
    return _dedupe(drafts)


@fanout.register
def _(event: TaskDeleted) -> list[NotificationDraft]:
    recipients = set(event.assignee_ids) | set(event.watcher_ids) | {event.creator_id}
    return [
        NotificationDraft(
            recipient_id=user_id,
            title="Task Deleted",
            message=f'"{event.task_title}" was deleted by {event.actor_name}',
            type=NotificationType.TASK_UPDATED,
            metadata={"taskId": str(event.task_id)},
        )
        for user_id in _ordered(recipients - {event.actor_id})
    ]


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FailedDelivery:
    draft: NotificationDraft
    error: str


@dataclass
class FanoutReport:
    delivered: list[NotificationDraft] = field(default_factory=list)
    failed: list[FailedDelivery] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


async def deliver(
    drafts: Iterable[NotificationDraft],
    create: Callable[[NotificationDraft], Awaitable[Any]],
) -> FanoutReport:
    """Persist each draft independently; a failure never stops the rest."""
    report = FanoutReport()
    for draft in drafts:
        try:
            await create(draft)
        except Exception as exc:
            log.warning(
                "notification.delivery_failed",
                recipient_id=str(draft.recipient_id),
                type=draft.type.value,
                error=str(exc),
            )
            report.failed.append(FailedDelivery(draft=draft, error=str(exc)))
            continue
        report.delivered.append(draft)
    if report.delivered or report.failed:
        log.info(
            "notification.fanout_delivered",
            delivered=len(report.delivered),
            failed=len(report.failed),
        )
    return report
