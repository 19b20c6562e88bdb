"""Initial TaskHub schema: users, orgs, teams, projects, tasks, notifications, meetings.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid_pk() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True, nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _fk(column: str, target: str, *, primary_key: bool = False, nullable: bool = False,
        ondelete: str | None = None) -> sa.Column:
    return sa.Column(
        column,
        sa.Uuid(),
        sa.ForeignKey(target, ondelete=ondelete),
        primary_key=primary_key,
        nullable=nullable,
    )


# ---------------------------------------------------------------------------
# Upgrade
# ---------------------------------------------------------------------------

def upgrade() -> None:
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
        sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "organizations",
        _uuid_pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("admin_key_hash", sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])

    op.create_table(
        "organization_members",
        _fk("organization_id", "organizations.id", primary_key=True, ondelete="CASCADE"),
        _fk("user_id", "users.id", primary_key=True, ondelete="CASCADE"),
        sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "teams",
        _uuid_pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        _fk("owner_id", "users.id"),
        _fk("organization_id", "organizations.id", nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_teams_owner_id", "teams", ["owner_id"])
    op.create_index("ix_teams_organization_id", "teams", ["organization_id"])

    op.create_table(
        "team_memberships",
        _uuid_pk(),
        _fk("team_id", "teams.id", ondelete="CASCADE"),
        _fk("user_id", "users.id"),
        sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        _fk("invited_by", "users.id", nullable=True),
        sa.Column("invited_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("token", sa.String(), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_memberships_team_user"),
    )
    op.create_index("ix_team_memberships_team_id", "team_memberships", ["team_id"])
    op.create_index("ix_team_memberships_user_id", "team_memberships", ["user_id"])
    op.create_index("ix_team_memberships_token", "team_memberships", ["token"])

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
        _fk("organization_id", "organizations.id", nullable=True),
        _fk("team_id", "teams.id", nullable=True),
        _fk("created_by", "users.id", nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_projects_key", "projects", ["key"], unique=True)
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])
    op.create_index("ix_projects_team_id", "projects", ["team_id"])

    op.create_table(
        "project_members",
        _fk("project_id", "projects.id", primary_key=True, ondelete="CASCADE"),
        _fk("user_id", "users.id", primary_key=True),
        sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "tasks",
        _uuid_pk(),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="TODO"),
        sa.Column("priority", sa.String(), nullable=False, server_default="MEDIUM"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        _fk("project_id", "projects.id", nullable=True, ondelete="CASCADE"),
        _fk("creator_id", "users.id"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_creator_id", "tasks", ["creator_id"])

    op.create_table(
        "tags",
        _uuid_pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(), nullable=False, server_default="#6b7280"),
        *_timestamps(),
    )
    op.create_index("ix_tags_name", "tags", ["name"], unique=True)

    for table, other, target in (
        ("task_assignees", "user_id", "users.id"),
        ("task_watchers", "user_id", "users.id"),
        ("task_tags", "tag_id", "tags.id"),
    ):
        op.create_table(
            table,
            _fk("task_id", "tasks.id", primary_key=True, ondelete="CASCADE"),
            _fk(other, target, primary_key=True),
        )

    op.create_table(
        "comments",
        _uuid_pk(),
        _fk("task_id", "tasks.id", ondelete="CASCADE"),
        _fk("author_id", "users.id"),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_comments_task_id", "comments", ["task_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    op.create_table(
        "attachments",
        _uuid_pk(),
        _fk("task_id", "tasks.id", ondelete="CASCADE"),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=False, server_default="application/octet-stream"),
        sa.Column("size", sa.Integer(), nullable=False, server_default="0"),
        _fk("uploaded_by", "users.id"),
        *_timestamps(),
    )
    op.create_index("ix_attachments_task_id", "attachments", ["task_id"])

    op.create_table(
        "notifications",
        _uuid_pk(),
        _fk("user_id", "users.id", ondelete="CASCADE"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index(
        "ix_notifications_user_unread", "notifications", ["user_id"],
        postgresql_where=sa.text("NOT read"),
    )

    op.create_table(
        "meetings",
        _uuid_pk(),
        _fk("team_id", "teams.id", ondelete="CASCADE"),
        _fk("created_by", "users.id"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("meet_link", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_meetings_team_id", "meetings", ["team_id"])
    op.create_index("ix_meetings_start_time", "meetings", ["start_time"])


# ---------------------------------------------------------------------------
# Downgrade
# ---------------------------------------------------------------------------

def downgrade() -> None:
    for table in (
        "meetings",
        "notifications",
        "attachments",
        "comments",
        "task_tags",
        "task_watchers",
        "task_assignees",
        "tags",
        "tasks",
        "project_members",
        "projects",
        "team_memberships",
        "teams",
        "organization_members",
        "organizations",
        "users",
    ):
        op.drop_table(table)
