"""
Integration tests for global search.

Tests cover:
- Tasks, projects and users are matched case-insensitively
- Results are limited to what the caller can open
- Global MANAGER sees everything
- LIKE wildcards in the query are matched literally
"""

from __future__ import annotations

import pytest

from taskhub_shared.schemas.common import GlobalRole


@pytest.fixture
async def world(client, signup):
    """Alice owns APOLLO (with Carol), Bob owns BRAVO and assigns Alice a loose task."""
    alice = await signup("alice@example.com", "Alice")
    bob = await signup("bob@example.com", "Bob")
    carol = await signup("carol@example.com", "Carol")

    apollo = (
        await client.post(
            "/api/v1/projects",
            json={"name": "Apollo", "key": "APOLLO", "member_ids": [str(carol.id)]},
            headers=alice.headers,
        )
    ).json()
    bravo = (
        await client.post("/api/v1/projects", json={"name": "Bravo", "key": "BRAVO"}, headers=bob.headers)
    ).json()

    async def task(user, title, **extra):
        resp = await client.post("/api/v1/tasks", json={"title": title, **extra}, headers=user.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    tasks = {
        "rocket": await task(alice, "Launch rocket", project_id=apollo["id"]),
        "party": await task(bob, "Launch party", project_id=bravo["id"]),
        "checklist": await task(bob, "Launch checklist", assignee_ids=[str(alice.id)]),
        "percent": await task(alice, "Reach 100% coverage", project_id=apollo["id"]),
    }
    return (alice, bob, carol), (apollo, bravo), tasks


async def _search(client, user, q):
    resp = await client.get("/api/v1/search", params={"q": q}, headers=user.headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestSearchVisibility:
    @pytest.mark.asyncio
    async def test_tasks_follow_task_visibility(self, client, world):
        (alice, bob, _), _, tasks = world
        found = {t["id"] for t in (await _search(client, alice, "LAUNCH"))["tasks"]}
        assert found == {tasks["rocket"]["id"], tasks["checklist"]["id"]}

        found = {t["id"] for t in (await _search(client, bob, "launch"))["tasks"]}
        assert found == {tasks["party"]["id"], tasks["checklist"]["id"]}

    @pytest.mark.asyncio
    async def test_projects_follow_membership(self, client, world):
        (alice, _, carol), (apollo, _), _ = world
        for user in (alice, carol):
            assert [p["id"] for p in (await _search(client, user, "o"))["projects"]] == [apollo["id"]]

    @pytest.mark.asyncio
    async def test_users_are_limited_to_collaborators(self, client, world):
        (alice, bob, _), _, _ = world
        assert [u["name"] for u in (await _search(client, alice, "example.com"))["users"]] == [
            "Alice",
            "Carol",
        ]
        assert [u["name"] for u in (await _search(client, bob, "example.com"))["users"]] == ["Bob"]

    @pytest.mark.asyncio
    async def test_teammates_are_visible(self, client, world):
        (alice, bob, _), _, _ = world
        team = (await client.post("/api/v1/teams", json={"name": "Crew"}, headers=bob.headers)).json()
        invite = await client.post(
            f"/api/v1/teams/{team['id']}/invite", json={"email": alice.email}, headers=bob.headers
        )
        # pending invitees are not teammates yet
        assert (await _search(client, bob, "alice"))["users"] == []

        await client.post(
            f"/api/v1/teams/{team['id']}/invite/accept",
            json={"token": invite.json()["token"]},
            headers=alice.headers,
        )
        assert [u["name"] for u in (await _search(client, bob, "alice"))["users"]] == ["Alice"]
        assert [u["name"] for u in (await _search(client, alice, "bob"))["users"]] == ["Bob"]

    @pytest.mark.asyncio
    async def test_manager_sees_everything(self, client, signup, promote, world):
        _, (apollo, bravo), tasks = world
        dave = await promote(await signup("dave@example.com", "Dave"), GlobalRole.MANAGER)
        results = await _search(client, dave, "a")
        assert {p["id"] for p in results["projects"]} == {apollo["id"], bravo["id"]}
        assert len(results["users"]) == 4
        assert {t["id"] for t in results["tasks"]} == {t["id"] for t in tasks.values()}


class TestSearchQuery:
    @pytest.mark.asyncio
    async def test_blank_query_returns_nothing(self, client, world):
        (alice, _, _), _, _ = world
        assert await _search(client, alice, "   ") == {"tasks": [], "projects": [], "users": []}

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, client, world):
        (alice, _, _), _, tasks = world
        assert [t["id"] for t in (await _search(client, alice, "%"))["tasks"]] == [tasks["percent"]["id"]]
        assert (await _search(client, alice, "_"))["tasks"] == []

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        resp = await client.get("/api/v1/search", params={"q": "x"})
        assert resp.status_code == 401
