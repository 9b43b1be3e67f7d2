"""Integration tests for /api/v1/bugs/* routes.

The api fixture is module-scoped, so every test creates the bugs it needs
instead of relying on ids from earlier tests.

Covers:
- every bug route requires a token (401 invalid_token)
- create ignores a client-supplied status of any value; response nests reporter/assignee users
- ids beyond the 64-bit integer range answer 404 / 400 like any unknown id
- list scoping: developers see only their assignments, managers/admins see all
- PATCH status: assignee only -> 403 forbidden for everyone else
- assign: manager/admin only; non-developer or unknown target -> 400 invalid_assignee
- PUT: partial update, outsider 403, empty body 400 no_changes (after the 404/403 checks)
- DELETE: manager/admin only (checked before lookup); unknown id -> 404
- the full report -> assign -> resolve scenario over HTTP
"""

import pytest

BUGS = "/api/v1/bugs"


def _create(api, who: str = "rita", **overrides) -> dict:
    body = {"title": "Crash on load", "description": "App crashes at startup", "priority": "high"}
    body.update(overrides)
    resp = api.client.post(BUGS, json=body, headers=api.headers(who))
    assert resp.status_code == 201, resp.text
    return resp.json()


def _assign(api, bug_id: int, developer: str = "dev", who: str = "manager"):
    return api.client.post(
        f"{BUGS}/{bug_id}/assign",
        json={"developer_id": api.users[developer].id},
        headers=api.headers(who),
    )


@pytest.fixture
def assigned_bug(api) -> dict:
    """A bug reported by rita and assigned to dev."""
    bug = _create(api)
    resp = _assign(api, bug["id"])
    assert resp.status_code == 200
    return resp.json()


class TestAuthRequired:
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get", BUGS),
            ("post", BUGS),
            ("get", f"{BUGS}/1"),
            ("put", f"{BUGS}/1"),
            ("delete", f"{BUGS}/1"),
            ("patch", f"{BUGS}/1/status"),
            ("post", f"{BUGS}/1/assign"),
        ],
    )
    def test_no_token(self, api, method, path) -> None:
        resp = api.client.request(method.upper(), path)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"


class TestCreateAndRead:
    def test_create(self, api) -> None:
        bug = _create(api, status="resolved")
        assert bug["status"] == "open"
        assert bug["priority"] == "high"
        assert bug["assigned_to"] is None
        assert bug["reported_by"] == {
            "id": api.users["rita"].id,
            "name": "Rita",
            "email": "rita@example.com",
            "role": "developer",
        }
        assert bug["created_at"] == bug["updated_at"]

    @pytest.mark.parametrize(
        "body",
        [
            {"title": "", "description": "d", "priority": "high"},
            {"title": "t", "description": "d", "priority": "urgent"},
            {"title": "t", "priority": "low"},
        ],
        ids=["blank-title", "bad-priority", "missing-description"],
    )
    def test_create_invalid(self, api, body) -> None:
        resp = api.client.post(BUGS, json=body, headers=api.headers("rita"))
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_get_by_id_any_role(self, api) -> None:
        bug = _create(api)
        resp = api.client.get(f"{BUGS}/{bug['id']}", headers=api.headers("other_dev"))
        assert resp.status_code == 200
        assert resp.json() == bug

    @pytest.mark.parametrize("status", ["closed", "resolved", 7, None])
    def test_any_client_status_is_ignored(self, api, status) -> None:
        bug = _create(api, status=status)
        assert bug["status"] == "open"

    @pytest.mark.parametrize("bug_id", [2**63, 2**70])
    def test_id_beyond_integer_range_is_not_found(self, api, bug_id) -> None:
        resp = api.client.get(f"{BUGS}/{bug_id}", headers=api.headers("admin"))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_get_unknown(self, api) -> None:
        resp = api.client.get(f"{BUGS}/999999", headers=api.headers("admin"))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_list_scoping(self, api, assigned_bug) -> None:
        unassigned = _create(api, title="Nobody's bug")

        dev_ids = [b["id"] for b in api.client.get(BUGS, headers=api.headers("dev")).json()]
        assert assigned_bug["id"] in dev_ids
        assert unassigned["id"] not in dev_ids

        rita_ids = [b["id"] for b in api.client.get(BUGS, headers=api.headers("rita")).json()]
        assert assigned_bug["id"] not in rita_ids

        for who in ("manager", "admin"):
            ids = [b["id"] for b in api.client.get(BUGS, headers=api.headers(who)).json()]
            assert {assigned_bug["id"], unassigned["id"]} <= set(ids)
            assert ids == sorted(ids, reverse=True)


class TestStatus:
    def test_assignee_updates_status(self, api, assigned_bug) -> None:
        resp = api.client.patch(
            f"{BUGS}/{assigned_bug['id']}/status",
            json={"status": "in-progress"},
            headers=api.headers("dev"),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "in-progress"

    @pytest.mark.parametrize("who", ["rita", "other_dev", "manager", "admin"])
    def test_non_assignee_forbidden(self, api, assigned_bug, who) -> None:
        resp = api.client.patch(
            f"{BUGS}/{assigned_bug['id']}/status",
            json={"status": "resolved"},
            headers=api.headers(who),
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"
        stored = api.client.get(f"{BUGS}/{assigned_bug['id']}", headers=api.headers("admin")).json()
        assert stored["status"] == "open"

    def test_unknown_status_value(self, api, assigned_bug) -> None:
        resp = api.client.patch(
            f"{BUGS}/{assigned_bug['id']}/status",
            json={"status": "closed"},
            headers=api.headers("dev"),
        )
        assert resp.status_code == 422

    def test_unknown_bug(self, api) -> None:
        resp = api.client.patch(f"{BUGS}/999999/status", json={"status": "resolved"}, headers=api.headers("dev"))
        assert resp.status_code == 404


class TestAssign:
    def test_admin_assigns(self, api) -> None:
        bug = _create(api)
        resp = _assign(api, bug["id"], developer="other_dev", who="admin")
        assert resp.status_code == 200
        assert resp.json()["assigned_to"]["id"] == api.users["other_dev"].id

    def test_developer_forbidden(self, api) -> None:
        bug = _create(api)
        resp = _assign(api, bug["id"], who="dev")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    @pytest.mark.parametrize("target", ["manager", "admin"])
    def test_non_developer_target(self, api, target) -> None:
        bug = _create(api)
        resp = _assign(api, bug["id"], developer=target)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_assignee"

    def test_unknown_target(self, api) -> None:
        bug = _create(api)
        resp = api.client.post(f"{BUGS}/{bug['id']}/assign", json={"developer_id": 999999}, headers=api.headers("manager"))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_assignee"

    def test_unknown_bug(self, api) -> None:
        resp = _assign(api, 999999)
        assert resp.status_code == 404

    def test_developer_forbidden_on_unknown_bug(self, api) -> None:
        resp = _assign(api, 999999, who="dev")
        assert resp.status_code == 403

    def test_target_beyond_integer_range(self, api) -> None:
        bug = _create(api)
        resp = api.client.post(f"{BUGS}/{bug['id']}/assign", json={"developer_id": 2**70}, headers=api.headers("manager"))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_assignee"


class TestUpdate:
    @pytest.mark.parametrize("who", ["rita", "dev", "manager", "admin"])
    def test_partial_update(self, api, assigned_bug, who) -> None:
        resp = api.client.put(f"{BUGS}/{assigned_bug['id']}", json={"title": "T"}, headers=api.headers(who))
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "T"
        assert body["description"] == assigned_bug["description"]
        assert body["priority"] == assigned_bug["priority"]
        assert body["status"] == assigned_bug["status"]

    def test_outsider_forbidden(self, api, assigned_bug) -> None:
        resp = api.client.put(f"{BUGS}/{assigned_bug['id']}", json={"title": "T"}, headers=api.headers("other_dev"))
        assert resp.status_code == 403

    def test_empty_body(self, api, assigned_bug) -> None:
        resp = api.client.put(f"{BUGS}/{assigned_bug['id']}", json={}, headers=api.headers("manager"))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_changes"

    def test_empty_body_on_unknown_bug_is_not_found(self, api) -> None:
        resp = api.client.put(f"{BUGS}/999999", json={}, headers=api.headers("manager"))
        assert resp.status_code == 404

    def test_empty_body_from_outsider_is_forbidden(self, api, assigned_bug) -> None:
        resp = api.client.put(f"{BUGS}/{assigned_bug['id']}", json={}, headers=api.headers("other_dev"))
        assert resp.status_code == 403

    def test_status_not_editable_via_put(self, api, assigned_bug) -> None:
        resp = api.client.put(
            f"{BUGS}/{assigned_bug['id']}",
            json={"priority": "low", "status": "resolved"},
            headers=api.headers("manager"),
        )
        assert resp.status_code == 200
        assert resp.json()["priority"] == "low"
        assert resp.json()["status"] == "open"


class TestDelete:
    @pytest.mark.parametrize("who", ["manager", "admin"])
    def test_privileged_delete(self, api, who) -> None:
        bug = _create(api)
        resp = api.client.delete(f"{BUGS}/{bug['id']}", headers=api.headers(who))
        assert resp.status_code == 200
        assert resp.json() == {"message": "Bug deleted successfully."}
        assert api.client.get(f"{BUGS}/{bug['id']}", headers=api.headers(who)).status_code == 404

    @pytest.mark.parametrize("who", ["rita", "dev"])
    def test_developer_forbidden(self, api, assigned_bug, who) -> None:
        resp = api.client.delete(f"{BUGS}/{assigned_bug['id']}", headers=api.headers(who))
        assert resp.status_code == 403
        assert api.client.get(f"{BUGS}/{assigned_bug['id']}", headers=api.headers("admin")).status_code == 200

    def test_unknown(self, api) -> None:
        resp = api.client.delete(f"{BUGS}/999999", headers=api.headers("admin"))
        assert resp.status_code == 404

    def test_developer_forbidden_on_unknown_bug(self, api) -> None:
        resp = api.client.delete(f"{BUGS}/999999", headers=api.headers("dev"))
        assert resp.status_code == 403

    def test_id_beyond_integer_range(self, api) -> None:
        resp = api.client.delete(f"{BUGS}/{2**70}", headers=api.headers("admin"))
        assert resp.status_code == 404


def test_report_assign_resolve_over_http(api) -> None:
    """Rita files a bug, the manager assigns it to Dev, Dev resolves it, Rita cannot reopen it."""
    bug = _create(api, who="rita")
    assert bug["status"] == "open"
    assert bug["assigned_to"] is None

    resp = _assign(api, bug["id"], developer="dev", who="manager")
    assert resp.json()["assigned_to"]["id"] == api.users["dev"].id

    resp = api.client.patch(f"{BUGS}/{bug['id']}/status", json={"status": "resolved"}, headers=api.headers("dev"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "resolved"

    resp = api.client.patch(f"{BUGS}/{bug['id']}/status", json={"status": "open"}, headers=api.headers("rita"))
    assert resp.status_code == 403
    final = api.client.get(f"{BUGS}/{bug['id']}", headers=api.headers("rita")).json()
    assert final["status"] == "resolved"
