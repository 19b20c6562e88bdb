"""
Tests for the notification inbox and draft persistence.

Covers:
- Listing newest first with page/limit clamping
- Marking read/unread (own notifications only)
- Unread count
- Deleting (someone else's notification looks missing)
- A failing draft does not lose the others
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func
from sqlmodel import select

from app.models.notification import Notification
from app.policy.fanout import NotificationDraft
from app.services.notifications import clamp_page, deliver_drafts
from taskhub_shared.schemas.common import NotificationType


@pytest.fixture
async def seeded(session_factory, signup):
    """A user with five SYSTEM notifications a minute apart, plus a second user with one."""
    alice = await signup("alice@example.com")
    bob = await signup("bob@example.com")
    start = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    async with session_factory() as session:
        for i in range(5):
            session.add(
                Notification(
                    user_id=alice.id,
                    title=f"Note {i}",
                    message="m",
                    type=NotificationType.SYSTEM.value,
                    meta={"i": i},
                    created_at=start + timedelta(minutes=i),
                )
            )
        session.add(Notification(user_id=bob.id, title="Bob's", message="m", type=NotificationType.SYSTEM.value))
        await session.commit()
    return alice, bob


class TestInbox:
    @pytest.mark.asyncio
    async def test_newest_first_and_paged(self, client, seeded):
        alice, _ = seeded
        resp = await client.get("/api/v1/notifications?page=1&limit=2", headers=alice.headers)
        body = resp.json()
        assert body["total"] == 5
        assert body["limit"] == 2
        assert [n["title"] for n in body["data"]] == ["Note 4", "Note 3"]

        page3 = (await client.get("/api/v1/notifications?page=3&limit=2", headers=alice.headers)).json()
        assert [n["title"] for n in page3["data"]] == ["Note 0"]
        assert page3["data"][0]["metadata"] == {"i": 0}

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, client, seeded):
        alice, _ = seeded
        body = (await client.get("/api/v1/notifications?limit=1000", headers=alice.headers)).json()
        assert body["limit"] == 100

    def test_clamp_page(self):
        assert clamp_page(0, 0) == (1, 1)
        assert clamp_page(3, 500) == (3, 100)

    @pytest.mark.asyncio
    async def test_mark_read_and_unread_count(self, client, seeded):
        alice, bob = seeded
        notes = (await client.get("/api/v1/notifications", headers=alice.headers)).json()["data"]
        bobs = (await client.get("/api/v1/notifications", headers=bob.headers)).json()["data"]

        assert (await client.get("/api/v1/notifications/unread-count", headers=alice.headers)).json() == {
            "unread": 5
        }
        resp = await client.put(
            "/api/v1/notifications",
            json={"notification_ids": [notes[0]["id"], notes[1]["id"], bobs[0]["id"]]},
            headers=alice.headers,
        )
        assert resp.json() == {"updated": 2}
        assert (await client.get("/api/v1/notifications/unread-count", headers=alice.headers)).json() == {
            "unread": 3
        }
        assert (await client.get("/api/v1/notifications/unread-count", headers=bob.headers)).json() == {
            "unread": 1
        }

        resp = await client.put(
            "/api/v1/notifications",
            json={"notification_ids": [notes[0]["id"]], "read": False},
            headers=alice.headers,
        )
        assert resp.json() == {"updated": 1}

    @pytest.mark.asyncio
    async def test_mark_requires_ids(self, client, seeded):
        alice, _ = seeded
        resp = await client.put("/api/v1/notifications", json={"notification_ids": []}, headers=alice.headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_delete_own_only(self, client, seeded):
        alice, bob = seeded
        bobs = (await client.get("/api/v1/notifications", headers=bob.headers)).json()["data"]
        resp = await client.delete(f"/api/v1/notifications/{bobs[0]['id']}", headers=alice.headers)
        assert resp.status_code == 404

        assert (await client.delete(f"/api/v1/notifications/{bobs[0]['id']}", headers=bob.headers)).status_code == 204
        assert (await client.get("/api/v1/notifications", headers=bob.headers)).json()["total"] == 0

    @pytest.mark.asyncio
    async def test_delete_missing(self, client, seeded):
        alice, _ = seeded
        assert (await client.delete(f"/api/v1/notifications/{uuid.uuid4()}", headers=alice.headers)).status_code == 404


class TestDraftPersistence:
    @pytest.mark.asyncio
    async def test_failed_draft_is_isolated(self, session_factory):
        recipients = [uuid.uuid4() for _ in range(3)]
        drafts = [
            NotificationDraft(recipients[0], "ok", "m", NotificationType.SYSTEM),
            # not JSON serializable: the insert fails inside its SAVEPOINT
            NotificationDraft(recipients[1], "broken", "m", NotificationType.SYSTEM, {"bad": object()}),
            NotificationDraft(recipients[2], "ok", "m", NotificationType.SYSTEM),
        ]
        async with session_factory() as session:
            report = await deliver_drafts(session, drafts)
            await session.commit()

        assert not report.ok
        assert [f.draft.recipient_id for f in report.failed] == [recipients[1]]
        assert len(report.delivered) == 2

        async with session_factory() as session:
            stored = await session.execute(select(Notification.user_id))
            assert set(stored.scalars().all()) == {recipients[0], recipients[2]}
            count = await session.execute(select(func.count()).select_from(Notification))
            assert count.scalar_one() == 2
