"""
Tests for notification fanout.

Covers:
- CommentAdded: mention precedence, actor exclusion, dedupe, ordering
- Team invitation lifecycle events
- Meeting scheduled / cancelled / reminder recipients
- Task created / changed / deleted
- deliver(): independent failures and the report
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from app.policy.fanout import (
    CommentAdded,
    FanoutReport,
    MeetingCancelled,
    MeetingReminder,
    MeetingScheduled,
    MemberAdded,
    MentionDetected,
    NotificationDraft,
    TaskChanged,
    TaskCreated,
    TaskDeleted,
    TeamInviteAccepted,
    TeamInvited,
    TeamMemberRemoved,
    deliver,
    fanout,
    resolve_mentions,
)
from taskhub_shared.schemas.common import NotificationType, TaskStatus


def _ids(n: int) -> list[uuid.UUID]:
    return [uuid.uuid4() for _ in range(n)]


def _by_type(drafts, kind):
    return [d for d in drafts if d.type == kind]


def _comment(**overrides) -> CommentAdded:
    fields = dict(
        task_id=uuid.uuid4(),
        task_title="Ship it",
        actor_id=uuid.uuid4(),
        actor_name="Actor",
        creator_id=uuid.uuid4(),
        content="looks good",
    )
    fields.update(overrides)
    return CommentAdded(**fields)


# ---------------------------------------------------------------------------
# Comments and mentions
# ---------------------------------------------------------------------------

class TestCommentAdded:
    def test_mentioned_assignee_gets_only_the_mention(self):
        """A mentioned assignee receives one MENTION draft and no COMMENT_ADDED draft."""
        actor, creator, assignee = _ids(3)
        event = _comment(
            actor_id=actor,
            creator_id=creator,
            content="@bob@example.com can you check?",
            assignee_ids=frozenset({assignee}),
            directory={"bob@example.com": assignee},
        )
        drafts = fanout(event)
        to_assignee = [d for d in drafts if d.recipient_id == assignee]
        assert [d.type for d in to_assignee] == [NotificationType.MENTION]
        assert _by_type(drafts, NotificationType.COMMENT_ADDED)[0].recipient_id == creator

    def test_actor_never_notified(self):
        """Actor who is creator and assignee is excluded from every draft."""
        actor, watcher = _ids(2)
        event = _comment(
            actor_id=actor,
            creator_id=actor,
            assignee_ids=frozenset({actor}),
            watcher_ids=frozenset({watcher}),
            prior_commenter_ids=frozenset({actor}),
        )
        drafts = fanout(event)
        assert actor not in {d.recipient_id for d in drafts}
        assert [d.recipient_id for d in drafts] == [watcher]

    def test_self_mention_is_ignored(self):
        actor, creator = _ids(2)
        event = _comment(
            actor_id=actor,
            creator_id=creator,
            content="note to @me@example.com",
            directory={"me@example.com": actor},
        )
        drafts = fanout(event)
        assert _by_type(drafts, NotificationType.MENTION) == []
        assert [d.recipient_id for d in drafts] == [creator]

    def test_unknown_mention_is_dropped(self):
        event = _comment(content="hey @ghost@example.com")
        assert _by_type(fanout(event), NotificationType.MENTION) == []

    def test_repeated_mention_collapses(self):
        target = uuid.uuid4()
        event = _comment(
            content="@t@example.com @T@EXAMPLE.com @t@example.com",
            directory={"t@example.com": target},
        )
        mentions = _by_type(fanout(event), NotificationType.MENTION)
        assert [d.recipient_id for d in mentions] == [target]

    def test_one_draft_per_recipient_and_stable_order(self):
        actor, creator, a, b = _ids(4)
        event = _comment(
            actor_id=actor,
            creator_id=creator,
            assignee_ids=frozenset({a, b}),
            watcher_ids=frozenset({a, creator}),
            prior_commenter_ids=frozenset({b}),
        )
        drafts = fanout(event)
        recipients = [d.recipient_id for d in drafts]
        assert recipients == sorted({creator, a, b}, key=str)
        assert all(d.metadata == {"taskId": str(event.task_id)} for d in drafts)

    def test_resolve_mentions_case_insensitive(self):
        user = uuid.uuid4()
        assert resolve_mentions("@Bob@Example.COM", {"bob@example.com": user}, uuid.uuid4()) == [user]

    def test_mention_detected_skips_self(self):
        actor = uuid.uuid4()
        event = MentionDetected(uuid.uuid4(), "t", actor, "A", actor)
        assert fanout(event) == []


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

class TestTeamEvents:
    def test_invite_carries_membership_and_token(self):
        team_id, user_id, membership_id = _ids(3)
        [draft] = fanout(TeamInvited(team_id, "Core", user_id, membership_id, "Olivia", "tok123"))
        assert draft.recipient_id == user_id
        assert draft.type == NotificationType.TEAM_INVITATION
        assert draft.metadata == {
            "teamId": str(team_id),
            "membershipId": str(membership_id),
            "token": "tok123",
        }

    def test_accept_notifies_admins_and_welcomes(self):
        owner, admin, joiner = _ids(3)
        drafts = fanout(
            TeamInviteAccepted(uuid.uuid4(), "Core", joiner, "Jo", admin_ids=frozenset({owner, admin}))
        )
        assert [d.recipient_id for d in drafts[:-1]] == sorted([owner, admin], key=str)
        assert drafts[-1].recipient_id == joiner
        assert drafts[-1].title == "Welcome to the Team"

    def test_member_removed_notifies_removed_user(self):
        actor, removed = _ids(2)
        [draft] = fanout(TeamMemberRemoved(uuid.uuid4(), "Core", removed, actor))
        assert draft.recipient_id == removed

    def test_leaving_yourself_is_silent(self):
        user = uuid.uuid4()
        assert fanout(TeamMemberRemoved(uuid.uuid4(), "Core", user, user)) == []


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------

class TestMeetingEvents:
    start = datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)

    def test_scheduled_excludes_actor_cancelled_includes_everyone(self):
        u1, u2, u3 = _ids(3)
        team_id, meeting_id = _ids(2)
        members = frozenset({u1, u2, u3})
        scheduled = fanout(MeetingScheduled(team_id, meeting_id, "Standup", self.start, u1, "U1", members))
        cancelled = fanout(MeetingCancelled(team_id, meeting_id, "Standup", members))

        assert len(scheduled) == 2
        assert {d.recipient_id for d in scheduled} == {u2, u3}
        assert all(d.type == NotificationType.MEETING_INVITE for d in scheduled)
        assert "2026-01-05 14:30 UTC" in scheduled[0].message

        assert len(cancelled) == 3
        assert {d.recipient_id for d in cancelled} == {u1, u2, u3}
        assert all(d.type == NotificationType.SYSTEM for d in cancelled)

    def test_reminder_goes_to_all_members(self):
        members = frozenset(_ids(2))
        drafts = fanout(MeetingReminder(uuid.uuid4(), uuid.uuid4(), "Retro", self.start, members))
        assert {d.recipient_id for d in drafts} == members
        assert drafts[0].title == "Meeting Reminder"


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------

class TestMemberAdded:
    def test_org_is_system(self):
        [draft] = fanout(MemberAdded("org", uuid.uuid4(), "Acme", uuid.uuid4(), "Admin"))
        assert draft.type == NotificationType.SYSTEM
        assert "organizationId" in draft.metadata

    def test_project_is_project_invite(self):
        [draft] = fanout(MemberAdded("project", uuid.uuid4(), "Apollo", uuid.uuid4(), "Admin"))
        assert draft.type == NotificationType.PROJECT_INVITE

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            fanout(MemberAdded("galaxy", uuid.uuid4(), "x", uuid.uuid4(), "Admin"))

    def test_unknown_event_type(self):
        with pytest.raises(TypeError):
            fanout(object())


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TestTaskEvents:
    def _changed(self, **overrides) -> TaskChanged:
        fields = dict(
            task_id=uuid.uuid4(),
            task_title="Fix bug",
            actor_id=uuid.uuid4(),
            actor_name="Actor",
            creator_id=uuid.uuid4(),
            old_status=TaskStatus.TODO,
            new_status=TaskStatus.TODO,
        )
        fields.update(overrides)
        return TaskChanged(**fields)

    def test_created_notifies_assignees_except_actor(self):
        actor, a = _ids(2)
        drafts = fanout(TaskCreated(uuid.uuid4(), "T", actor, "A", frozenset({actor, a})))
        assert [(d.recipient_id, d.type) for d in drafts] == [(a, NotificationType.TASK_ASSIGNED)]

    def test_done_notifies_previous_assignees_and_creator(self):
        actor, creator, a = _ids(3)
        drafts = fanout(
            self._changed(
                actor_id=actor,
                creator_id=creator,
                old_status=TaskStatus.IN_REVIEW,
                new_status=TaskStatus.DONE,
                previous_assignee_ids=frozenset({a, actor}),
                assignee_ids=frozenset({a, actor}),
            )
        )
        completed = _by_type(drafts, NotificationType.TASK_COMPLETED)
        assert {d.recipient_id for d in completed} == {a, creator}

    def test_reassignment(self):
        actor, creator, old, new = _ids(4)
        drafts = fanout(
            self._changed(
                actor_id=actor,
                creator_id=creator,
                previous_assignee_ids=frozenset({old}),
                assignee_ids=frozenset({new}),
            )
        )
        assert [d.recipient_id for d in _by_type(drafts, NotificationType.TASK_ASSIGNED)] == [new]
        unassigned = [d for d in drafts if d.title == "Task Unassigned"]
        assert [d.recipient_id for d in unassigned] == [old]

    def test_status_change_reaches_watchers_once(self):
        actor, creator, a, watcher = _ids(4)
        drafts = fanout(
            self._changed(
                actor_id=actor,
                creator_id=creator,
                new_status=TaskStatus.IN_PROGRESS,
                previous_assignee_ids=frozenset({a}),
                assignee_ids=frozenset({a}),
                watcher_ids=frozenset({watcher, a}),
            )
        )
        assert sorted(d.recipient_id for d in drafts) == sorted([creator, a, watcher])

    def test_no_change_is_silent(self):
        a = uuid.uuid4()
        event = self._changed(
            previous_assignee_ids=frozenset({a}), assignee_ids=frozenset({a}), watcher_ids=frozenset(_ids(2))
        )
        assert fanout(event) == []

    def test_deleted_notifies_everyone_but_actor(self):
        actor, a, w = _ids(3)
        drafts = fanout(TaskDeleted(uuid.uuid4(), "T", actor, "A", actor, frozenset({a}), frozenset({w, a})))
        assert {d.recipient_id for d in drafts} == {a, w}


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

class TestDeliver:
    def _drafts(self, n):
        return [
            NotificationDraft(uid, "t", "m", NotificationType.SYSTEM) for uid in _ids(n)
        ]

    @pytest.mark.asyncio
    async def test_all_delivered(self):
        stored = []

        async def create(draft):
            stored.append(draft)

        drafts = self._drafts(3)
        report = await deliver(drafts, create)
        assert isinstance(report, FanoutReport)
        assert report.ok
        assert report.delivered == drafts == stored

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_rest(self):
        drafts = self._drafts(3)
        broken = drafts[1].recipient_id

        async def create(draft):
            if draft.recipient_id == broken:
                raise RuntimeError("db down")

        report = await deliver(drafts, create)
        assert not report.ok
        assert report.delivered == [drafts[0], drafts[2]]
        assert [f.draft for f in report.failed] == [drafts[1]]
        assert report.failed[0].error == "db down"

    @pytest.mark.asyncio
    async def test_empty(self):
        async def create(draft):
            raise AssertionError("not called")

        report = await deliver([], create)
        assert report.ok and report.delivered == []
