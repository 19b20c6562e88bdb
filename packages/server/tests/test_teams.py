"""
Integration tests for teams, invitations and membership changes.

Tests cover:
- Team creation (owner membership) and visibility
- Invite -> notification with token -> accept -> admin notifications
- Role-ranked removal: MEMBER cannot remove ADMIN, ADMIN can remove MEMBER
- The owner's membership can never be removed, not even by a global ADMIN
- Membership role/status updates
- Team-scoped project and task listings
"""

from __future__ import annotations

import uuid

import pytest

from app.services import teams as team_service
from taskhub_shared.schemas.common import GlobalRole, TeamRole


@pytest.fixture
def team_api(client):
    """Small helpers over the team endpoints."""

    class _TeamApi:
        async def create(self, user, name="Core"):
            resp = await client.post("/api/v1/teams", json={"name": name}, headers=user.headers)
            assert resp.status_code == 201, resp.text
            return resp.json()

        async def invite(self, team, inviter, invitee, role="MEMBER"):
            return await client.post(
                f"/api/v1/teams/{team['id']}/invite",
                json={"email": invitee.email, "role": role},
                headers=inviter.headers,
            )

        async def add(self, team, inviter, invitee, role="MEMBER"):
            resp = await self.invite(team, inviter, invitee, role)
            assert resp.status_code == 201, resp.text
            body = resp.json()
            accepted = await client.post(
                f"/api/v1/teams/{team['id']}/invite/accept",
                json={"token": body["token"]},
                headers=invitee.headers,
            )
            assert accepted.status_code == 200, accepted.text
            return accepted.json()

        async def membership_of(self, team, user, viewer):
            resp = await client.get(f"/api/v1/teams/{team['id']}", headers=viewer.headers)
            return next(m for m in resp.json()["members"] if m["user_id"] == str(user.id))

        async def remove(self, team, membership_id, actor):
            return await client.delete(
                f"/api/v1/teams/{team['id']}/memberships/{membership_id}", headers=actor.headers
            )

    return _TeamApi()


@pytest.fixture
async def trio(signup, team_api):
    """Team with U1 (owner), U2 (ADMIN) and U3 (MEMBER), all ACTIVE."""
    u1 = await signup("u1@example.com", "U1")
    u2 = await signup("u2@example.com", "U2")
    u3 = await signup("u3@example.com", "U3")
    team = await team_api.create(u1)
    m2 = await team_api.add(team, u1, u2, "ADMIN")
    m3 = await team_api.add(team, u1, u3, "MEMBER")
    return team, (u1, u2, u3), (m2, m3)


class TestTeamCreation:
    @pytest.mark.asyncio
    async def test_creator_is_active_owner(self, signup, team_api):
        owner = await signup("owner@example.com")
        team = await team_api.create(owner)
        assert team["owner_id"] == str(owner.id)
        [membership] = team["members"]
        assert membership["role"] == "OWNER"
        assert membership["status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_outsider_cannot_view(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        outsider = await signup("outsider@example.com")
        team = await team_api.create(owner)
        resp = await client.get(f"/api/v1/teams/{team['id']}", headers=outsider.headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_team_is_404(self, client, signup):
        user = await signup("user@example.com")
        resp = await client.get(f"/api/v1/teams/{uuid.uuid4()}", headers=user.headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_list_only_my_teams(self, client, signup, team_api):
        a = await signup("a@example.com")
        b = await signup("b@example.com")
        await team_api.create(a, "Alpha")
        await team_api.create(b, "Beta")
        resp = await client.get("/api/v1/teams", headers=a.headers)
        assert [t["name"] for t in resp.json()] == ["Alpha"]

    @pytest.mark.asyncio
    async def test_create_in_foreign_org_is_forbidden(self, client, signup):
        owner = await signup("owner@example.com")
        outsider = await signup("outsider@example.com")
        org = (await client.post("/api/v1/orgs", json={"name": "Acme"}, headers=owner.headers)).json()
        resp = await client.post(
            "/api/v1/teams",
            json={"name": "Sneaky", "organization_id": org["organization"]["id"]},
            headers=outsider.headers,
        )
        assert resp.status_code == 403


class TestInvitations:
    @pytest.mark.asyncio
    async def test_invite_notification_carries_token(self, signup, team_api, inbox):
        owner = await signup("owner@example.com", "Olivia")
        invitee = await signup("invitee@example.com")
        team = await team_api.create(owner)

        resp = await team_api.invite(team, owner, invitee)
        assert resp.status_code == 201
        body = resp.json()
        assert body["membership"]["status"] == "PENDING"

        [notification] = await inbox(invitee)
        assert notification["type"] == "TEAM_INVITATION"
        assert notification["metadata"] == {
            "teamId": team["id"],
            "membershipId": body["membership"]["id"],
            "token": body["token"],
        }
        assert "Olivia" in notification["message"]

    @pytest.mark.asyncio
    async def test_accept_notifies_owner_and_welcomes(self, signup, team_api, inbox):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com", "Ivy")
        team = await team_api.create(owner)
        membership = await team_api.add(team, owner, invitee)
        assert membership["status"] == "ACTIVE"
        assert membership["joined_at"] is not None

        [to_owner] = await inbox(owner)
        assert to_owner["title"] == "Invitation Accepted"
        assert "Ivy" in to_owner["message"]
        titles = {n["title"] for n in await inbox(invitee)}
        assert titles == {"Team Invitation", "Welcome to the Team"}

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com")
        team = await team_api.create(owner)
        token = (await team_api.invite(team, owner, invitee)).json()["token"]
        url = f"/api/v1/teams/{team['id']}/invite/accept"
        assert (await client.post(url, json={"token": token}, headers=invitee.headers)).status_code == 200
        assert (await client.post(url, json={"token": token}, headers=invitee.headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_token_of_someone_else(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com")
        thief = await signup("thief@example.com")
        team = await team_api.create(owner)
        token = (await team_api.invite(team, owner, invitee)).json()["token"]
        resp = await client.post(
            f"/api/v1/teams/{team['id']}/invite/accept", json={"token": token}, headers=thief.headers
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_duplicate_invite_conflicts(self, signup, team_api):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com")
        team = await team_api.create(owner)
        assert (await team_api.invite(team, owner, invitee)).status_code == 201
        assert (await team_api.invite(team, owner, invitee)).status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_email(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        team = await team_api.create(owner)
        resp = await client.post(
            f"/api/v1/teams/{team['id']}/invite", json={"email": "nobody@example.com"}, headers=owner.headers
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_body_uses_error_envelope(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        team = await team_api.create(owner)
        resp = await client.post(f"/api/v1/teams/{team['id']}/invite", json={}, headers=owner.headers)
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["status"] == 400
        assert "email" in error["message"]

    @pytest.mark.asyncio
    async def test_cannot_invite_as_owner(self, signup, team_api):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com")
        team = await team_api.create(owner)
        assert (await team_api.invite(team, owner, invitee, role="OWNER")).status_code == 400

    @pytest.mark.asyncio
    async def test_pending_member_has_no_access(self, client, signup, team_api):
        owner = await signup("owner@example.com")
        invitee = await signup("invitee@example.com")
        team = await team_api.create(owner)
        await team_api.invite(team, owner, invitee, role="ADMIN")
        resp = await client.get(f"/api/v1/teams/{team['id']}", headers=invitee.headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_member_cannot_invite(self, signup, team_api, trio):
        team, (_, _, u3), _ = trio
        newcomer = await signup("new@example.com")
        assert (await team_api.invite(team, u3, newcomer)).status_code == 403


class TestRemoval:
    @pytest.mark.asyncio
    async def test_member_cannot_remove_admin_then_admin_removes_member(self, client, team_api, trio, inbox):
        team, (u1, u2, u3), (m2, m3) = trio

        resp = await team_api.remove(team, m2["id"], u3)
        assert resp.status_code == 403

        resp = await team_api.remove(team, m3["id"], u2)
        assert resp.status_code == 204

        members = (await client.get(f"/api/v1/teams/{team['id']}", headers=u1.headers)).json()["members"]
        assert str(u3.id) not in {m["user_id"] for m in members}
        assert "Removed from Team" in {n["title"] for n in await inbox(u3)}

    @pytest.mark.asyncio
    async def test_owner_membership_is_protected(self, signup, promote, team_api, trio):
        team, (u1, u2, _), _ = trio
        owner_membership = await team_api.membership_of(team, u1, u1)
        root = await promote(await signup("root@example.com"), GlobalRole.ADMIN)

        for actor in (u2, u1, root):
            resp = await team_api.remove(team, owner_membership["id"], actor)
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "CANNOT_REMOVE_OWNER"

    @pytest.mark.asyncio
    async def test_owner_check_repeats_on_fresh_read(self, client, team_api, trio, monkeypatch):
        """A membership that became OWNER after the first check is still refused."""
        team, (u1, u2, u3), (_, m3) = trio
        original = team_service.load_team_membership

        async def promoted_in_between(session, team_id, membership_id, *, fresh=False):
            membership = await original(session, team_id, membership_id, fresh=fresh)
            if fresh and membership is not None:
                membership.role = TeamRole.OWNER.value
            return membership

        monkeypatch.setattr(team_service, "load_team_membership", promoted_in_between)
        resp = await team_api.remove(team, m3["id"], u2)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "CANNOT_REMOVE_OWNER"

        monkeypatch.undo()
        members = (await client.get(f"/api/v1/teams/{team['id']}", headers=u1.headers)).json()["members"]
        assert str(u3.id) in {m["user_id"] for m in members}

    @pytest.mark.asyncio
    async def test_leaving_is_silent(self, team_api, trio, inbox):
        team, (_, u2, _), (m2, _) = trio
        before = len(await inbox(u2))
        assert (await team_api.remove(team, m2["id"], u2)).status_code == 204
        assert len(await inbox(u2)) == before

    @pytest.mark.asyncio
    async def test_unknown_membership(self, team_api, trio):
        team, (u1, _, _), _ = trio
        resp = await team_api.remove(team, uuid.uuid4(), u1)
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Membership not found"


class TestMembershipUpdate:
    @pytest.mark.asyncio
    async def test_admin_promotes_member(self, client, trio):
        team, (_, u2, _), (_, m3) = trio
        resp = await client.put(
            f"/api/v1/teams/{team['id']}/memberships/{m3['id']}",
            json={"role": "ADMIN", "status": "ACTIVE"},
            headers=u2.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "ADMIN"

    @pytest.mark.asyncio
    async def test_member_cannot_update(self, client, trio):
        team, (_, _, u3), (m2, _) = trio
        resp = await client.put(
            f"/api/v1/teams/{team['id']}/memberships/{m2['id']}",
            json={"role": "MEMBER", "status": "ACTIVE"},
            headers=u3.headers,
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_cannot_promote_to_owner(self, client, trio):
        team, (u1, _, _), (_, m3) = trio
        resp = await client.put(
            f"/api/v1/teams/{team['id']}/memberships/{m3['id']}",
            json={"role": "OWNER", "status": "ACTIVE"},
            headers=u1.headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_owner_role_is_fixed(self, client, team_api, trio):
        team, (u1, _, _), _ = trio
        owner_membership = await team_api.membership_of(team, u1, u1)
        resp = await client.put(
            f"/api/v1/teams/{team['id']}/memberships/{owner_membership['id']}",
            json={"role": "MEMBER", "status": "ACTIVE"},
            headers=u1.headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_owner_status_is_fixed(self, client, team_api, trio):
        team, (u1, u2, _), _ = trio
        owner_membership = await team_api.membership_of(team, u1, u1)
        url = f"/api/v1/teams/{team['id']}/memberships/{owner_membership['id']}"

        resp = await client.put(url, json={"role": "OWNER", "status": "PENDING"}, headers=u2.headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert (await team_api.membership_of(team, u1, u1))["status"] == "ACTIVE"

        # re-sending the current role and status is harmless
        resp = await client.put(url, json={"role": "OWNER", "status": "ACTIVE"}, headers=u2.headers)
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_update_team_details(self, client, trio):
        team, (_, u2, u3), _ = trio
        url = f"/api/v1/teams/{team['id']}"
        assert (await client.patch(url, json={"name": "Renamed"}, headers=u3.headers)).status_code == 403
        resp = await client.patch(url, json={"name": "Renamed"}, headers=u2.headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"


class TestTeamWork:
    async def _project(self, client, user, key, team=None):
        body = {"name": f"Project {key}", "key": key}
        if team is not None:
            body["team_id"] = team["id"]
        resp = await client.post("/api/v1/projects", json=body, headers=user.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    async def _task(self, client, user, project, title, priority="MEDIUM"):
        resp = await client.post(
            "/api/v1/tasks",
            json={"title": title, "project_id": project["id"], "priority": priority},
            headers=user.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    @pytest.mark.asyncio
    async def test_member_sees_only_team_projects(self, client, trio):
        team, (u1, _, u3), _ = trio
        owned = await self._project(client, u1, "CORE", team)
        await self._project(client, u1, "SIDE")
        resp = await client.get(f"/api/v1/teams/{team['id']}/projects", headers=u3.headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json()] == [owned["id"]]

    @pytest.mark.asyncio
    async def test_team_tasks_with_filters(self, client, trio):
        team, (u1, u2, u3), _ = trio
        project = await self._project(client, u1, "CORE", team)
        urgent = await self._task(client, u2, project, "Fix outage", priority="URGENT")
        routine = await self._task(client, u1, project, "Tidy docs", priority="LOW")
        await self._task(client, u1, await self._project(client, u1, "SIDE"), "Elsewhere")
        await client.patch(f"/api/v1/tasks/{routine['id']}", json={"status": "DONE"}, headers=u1.headers)

        url = f"/api/v1/teams/{team['id']}/tasks"
        resp = await client.get(url, headers=u3.headers)
        assert resp.status_code == 200
        assert {t["id"] for t in resp.json()} == {urgent["id"], routine["id"]}

        resp = await client.get(url, params={"priority": "URGENT"}, headers=u3.headers)
        assert [t["id"] for t in resp.json()] == [urgent["id"]]
        resp = await client.get(url, params={"status": "DONE"}, headers=u3.headers)
        assert [t["id"] for t in resp.json()] == [routine["id"]]

    @pytest.mark.asyncio
    async def test_unknown_filter_value(self, client, trio):
        team, (u1, _, _), _ = trio
        resp = await client.get(
            f"/api/v1/teams/{team['id']}/tasks", params={"status": "SOMEDAY"}, headers=u1.headers
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_outsider_and_pending_member_are_forbidden(self, client, signup, team_api, trio):
        team, (u1, _, _), _ = trio
        outsider = await signup("outsider@example.com")
        pending = await signup("pending@example.com")
        await team_api.invite(team, u1, pending)
        for user in (outsider, pending):
            for path in ("projects", "tasks"):
                resp = await client.get(f"/api/v1/teams/{team['id']}/{path}", headers=user.headers)
                assert resp.status_code == 403, (user.email, path)
