"""
Integration tests for projects.

Tests cover:
- Creation (unique key, creator membership, member notifications)
- Visibility through direct membership, team membership and global roles
- Member management (MANAGER+), member listing with team members
- Update / delete restricted to global ADMIN
"""

from __future__ import annotations

import uuid

import pytest

from taskhub_shared.schemas.common import GlobalRole


async def _create(client, user, key="APL", **extra):
    resp = await client.post(
        "/api/v1/projects", json={"name": f"Project {key}", "key": key, **extra}, headers=user.headers
    )
    return resp


class TestProjectCreation:
    @pytest.mark.asyncio
    async def test_creator_is_member_and_key_uppercased(self, client, signup):
        user = await signup("user@example.com")
        resp = await _create(client, user, key="apl")
        assert resp.status_code == 201
        body = resp.json()
        assert body["key"] == "APL"
        assert body["member_ids"] == [str(user.id)]
        assert body["task_count"] == 0

    @pytest.mark.asyncio
    async def test_duplicate_key_conflicts(self, client, signup):
        user = await signup("user@example.com")
        assert (await _create(client, user)).status_code == 201
        assert (await _create(client, user, key="apl")).status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_key(self, client, signup):
        user = await signup("user@example.com")
        resp = await _create(client, user, key="1BAD")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_initial_members_are_notified(self, client, signup, inbox):
        user = await signup("user@example.com", "Uma")
        other = await signup("other@example.com")
        resp = await _create(client, user, member_ids=[str(other.id)])
        assert resp.status_code == 201
        [note] = await inbox(other)
        assert note["type"] == "PROJECT_INVITE"
        assert note["metadata"] == {"projectId": resp.json()["id"]}
        assert await inbox(user) == []

    @pytest.mark.asyncio
    async def test_unknown_initial_member(self, client, signup):
        user = await signup("user@example.com")
        resp = await _create(client, user, member_ids=[str(uuid.uuid4())])
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_team_project_needs_team_access(self, client, signup):
        owner = await signup("owner@example.com")
        outsider = await signup("outsider@example.com")
        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=owner.headers)).json()
        resp = await _create(client, outsider, team_id=team["id"])
        assert resp.status_code == 403


class TestProjectVisibility:
    @pytest.mark.asyncio
    async def test_outsider_forbidden_manager_allowed(self, client, signup, promote):
        owner = await signup("owner@example.com")
        outsider = await signup("outsider@example.com")
        project = (await _create(client, owner)).json()
        url = f"/api/v1/projects/{project['id']}"

        assert (await client.get(url, headers=outsider.headers)).status_code == 403
        await promote(outsider, GlobalRole.MANAGER)
        assert (await client.get(url, headers=outsider.headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_team_members_see_team_projects(self, client, signup):
        owner = await signup("owner@example.com")
        mate = await signup("mate@example.com")
        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=owner.headers)).json()
        invite = await client.post(
            f"/api/v1/teams/{team['id']}/invite", json={"email": mate.email}, headers=owner.headers
        )
        project = (await _create(client, owner, team_id=team["id"])).json()
        url = f"/api/v1/projects/{project['id']}"

        # PENDING invitation grants nothing yet
        assert (await client.get(url, headers=mate.headers)).status_code == 403
        await client.post(
            f"/api/v1/teams/{team['id']}/invite/accept",
            json={"token": invite.json()["token"]},
            headers=mate.headers,
        )
        assert (await client.get(url, headers=mate.headers)).status_code == 200

        listed = await client.get("/api/v1/projects", headers=mate.headers)
        assert [p["id"] for p in listed.json()] == [project["id"]]

        members = await client.get(f"{url}/members", headers=mate.headers)
        by_email = {m["email"]: m["via_team"] for m in members.json()}
        assert by_email == {"owner@example.com": False, "mate@example.com": True}

    @pytest.mark.asyncio
    async def test_list_is_scoped(self, client, signup, promote):
        a = await signup("a@example.com")
        b = await signup("b@example.com")
        await _create(client, a, key="AAA")
        await _create(client, b, key="BBB")
        assert [p["key"] for p in (await client.get("/api/v1/projects", headers=a.headers)).json()] == ["AAA"]
        await promote(a, GlobalRole.MANAGER)
        assert [p["key"] for p in (await client.get("/api/v1/projects", headers=a.headers)).json()] == [
            "AAA",
            "BBB",
        ]

    @pytest.mark.asyncio
    async def test_missing_project(self, client, signup):
        user = await signup("user@example.com")
        assert (await client.get(f"/api/v1/projects/{uuid.uuid4()}", headers=user.headers)).status_code == 404


class TestProjectMembers:
    @pytest.mark.asyncio
    async def test_member_cannot_add_manager_can(self, client, signup, promote, inbox):
        owner = await signup("owner@example.com")
        newcomer = await signup("new@example.com")
        project = (await _create(client, owner)).json()
        url = f"/api/v1/projects/{project['id']}/members"

        resp = await client.post(url, json={"user_id": str(newcomer.id)}, headers=owner.headers)
        assert resp.status_code == 403

        await promote(owner, GlobalRole.MANAGER)
        resp = await client.post(url, json={"user_id": str(newcomer.id)}, headers=owner.headers)
        assert resp.status_code == 201
        assert [n["type"] for n in await inbox(newcomer)] == ["PROJECT_INVITE"]

        resp = await client.post(url, json={"user_id": str(newcomer.id)}, headers=owner.headers)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, signup, promote):
        manager = await promote(await signup("m@example.com"), GlobalRole.MANAGER)
        project = (await _create(client, manager)).json()
        resp = await client.post(
            f"/api/v1/projects/{project['id']}/members", json={"user_id": str(uuid.uuid4())}, headers=manager.headers
        )
        assert resp.status_code == 404


class TestProjectAdmin:
    @pytest.mark.asyncio
    async def test_only_global_admin_updates_and_deletes(self, client, signup, promote):
        owner = await signup("owner@example.com")
        project = (await _create(client, owner)).json()
        url = f"/api/v1/projects/{project['id']}"

        assert (await client.patch(url, json={"name": "New"}, headers=owner.headers)).status_code == 403
        assert (await client.delete(url, headers=owner.headers)).status_code == 403

        await promote(owner, GlobalRole.ADMIN)
        resp = await client.patch(url, json={"name": "New", "key": "NEW"}, headers=owner.headers)
        assert resp.status_code == 200
        assert resp.json()["key"] == "NEW"
        assert (await client.delete(url, headers=owner.headers)).status_code == 204
        assert (await client.get(url, headers=owner.headers)).status_code == 404
