"""
Test suite for the /api/projects facade.

Tests:
- Listing (empty store, sort orders)
- Project creation (auth, validation, owner from token)
- Project details and sub-collections
- Pledges (remaining-amount enforcement, aggregates, read-after-write)
- Owner-only updates

Run: pytest backend/test_projects_api.py -v
"""

from unittest.mock import patch

from backend.data_service import DataServiceError


class TestListProjects:
    """GET /api/projects"""

    def test_empty_store_returns_empty_list(self, client):
        resp = client.get("/api/projects")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_sort_orders(self, client, data):
        data.table("projects").insert([
            {"id": "a", "title": "A", "description": "", "goal_amount": 100, "current_amount": 10,
             "end_date": "2030-03-01", "created_at": "2026-01-01T00:00:00.000Z", "user_id": "u1"},
            {"id": "b", "title": "B", "description": "", "goal_amount": 100, "current_amount": 90,
             "end_date": "2030-01-01", "created_at": "2026-02-01T00:00:00.000Z", "user_id": "u1"},
            {"id": "c", "title": "C", "description": "", "goal_amount": 100, "current_amount": 50,
             "end_date": "2030-02-01", "created_at": "2026-03-01T00:00:00.000Z", "user_id": "u1"},
        ]).execute()

        def ids(sort=None):
            params = {"sort": sort} if sort else {}
            resp = client.get("/api/projects", params=params)
            assert resp.status_code == 200
            return [p["id"] for p in resp.json()]

        assert ids() == ["c", "b", "a"]
        assert ids("newest") == ["c", "b", "a"]
        assert ids("most-funded") == ["b", "c", "a"]
        assert ids("ending-soon") == ["b", "c", "a"]
        assert ids("bogus") == ["c", "b", "a"]

    def test_backend_failure_returns_generic_500(self, client):
        with patch("backend.routes_projects.list_projects", side_effect=DataServiceError("boom")):
            resp = client.get("/api/projects")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to fetch projects"}


class TestCreateProject:
    """POST /api/projects"""

    def test_requires_auth(self, client):
        resp = client.post("/api/projects", json={
            "title": "X", "description": "Y", "goal_amount": 10, "end_date": "2030-01-01",
        })
        assert resp.status_code == 401
        assert resp.json() == {"error": "Not authenticated"}

    def test_invalid_token_rejected(self, client):
        resp = client.post(
            "/api/projects",
            json={"title": "X", "description": "Y", "goal_amount": 10, "end_date": "2030-01-01"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    def test_missing_title_is_rejected_and_nothing_inserted(self, client, owner):
        headers, _ = owner
        resp = client.post(
            "/api/projects",
            json={"description": "Y", "goal_amount": 10, "end_date": "2030-01-01"},
            headers=headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "Invalid request body"
        assert client.get("/api/projects").json() == []

    def test_goal_below_one_rejected(self, client, owner):
        headers, _ = owner
        resp = client.post(
            "/api/projects",
            json={"title": "X", "description": "Y", "goal_amount": 0.5, "end_date": "2030-01-01"},
            headers=headers,
        )
        assert resp.status_code == 422

    def test_overflowing_goal_is_rejected_and_nothing_inserted(self, client, owner):
        # 1e400 overflows to inf when the JSON body is parsed
        headers, _ = owner
        resp = client.post(
            "/api/projects",
            content='{"title": "X", "description": "Y", "goal_amount": 1e400, "end_date": "2030-01-01"}',
            headers={**headers, "Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "Invalid request body"
        assert client.get("/api/projects").json() == []

    def test_created_project_is_owned_by_token_user(self, client, owner):
        headers, owner_id = owner
        resp = client.post(
            "/api/projects",
            json={
                "title": "  Solar Kettle ",
                "description": "Boil water",
                "goal_amount": "250.50",
                "end_date": "2030-01-01",
                "user_id": "someone-else",
            },
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["title"] == "Solar Kettle"
        assert body["user_id"] == owner_id
        assert body["goal_amount"] == 250.5
        assert body["current_amount"] == 0
        assert body["backer_count"] == 0
        assert body["end_date"] == "2030-01-01"
        assert [p["id"] for p in client.get("/api/projects").json()] == [body["id"]]

    def test_past_end_date_is_accepted(self, client, owner):
        headers, _ = owner
        resp = client.post(
            "/api/projects",
            json={"title": "Late", "description": "Y", "goal_amount": 10, "end_date": "2001-01-01"},
            headers=headers,
        )
        assert resp.status_code == 200


class TestProjectDetails:
    """GET /api/projects/{id}"""

    def test_detail_includes_empty_collections(self, client, project):
        resp = client.get(f"/api/projects/{project['id']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Solar Kettle"
        assert body["updates"] == []
        assert body["pledges"] == []

    def test_unknown_project_is_404(self, client):
        resp = client.get("/api/projects/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Project not found"}


class TestPledges:
    """POST /api/projects/{id}/pledges"""

    def test_pledge_updates_aggregates_and_returns_fresh_detail(self, client, project, backer):
        headers, _ = backer
        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 400}, headers=headers)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["current_amount"] == 400
        assert body["backer_count"] == 1
        assert [p["amount"] for p in body["pledges"]] == [400]
        assert set(body["pledges"][0].keys()) == {"amount", "created_at"}

    def test_pledge_over_remaining_is_rejected(self, client, data, project, backer):
        headers, _ = backer
        client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 400}, headers=headers)

        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 601}, headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "The maximum pledge amount available is $600.00"}
        rows = data.table("pledges").select("*").eq("project_id", project["id"]).execute().data
        assert len(rows) == 1

    def test_pledge_exactly_remaining_completes_project(self, client, project, backer):
        headers, _ = backer
        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 1000}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["current_amount"] == 1000

        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 1}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "The maximum pledge amount available is $0.00"

    def test_non_positive_amount_is_422(self, client, project, backer):
        headers, _ = backer
        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 0}, headers=headers)
        assert resp.status_code == 422

    def test_overflowing_amount_is_422(self, client, data, project, backer):
        headers, _ = backer
        resp = client.post(
            f"/api/projects/{project['id']}/pledges",
            content='{"amount": 1e400}',
            headers={**headers, "Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert data.table("pledges").select("*").execute().data == []

    def test_repeat_backer_counted_once(self, client, project, backer, register):
        backer_headers, _ = backer
        other_headers, _ = register("third@example.com")
        for headers in (backer_headers, backer_headers, other_headers):
            resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 100}, headers=headers)
            assert resp.status_code == 200
        body = resp.json()
        assert body["current_amount"] == 300
        assert body["backer_count"] == 2

    def test_pledge_requires_auth(self, client, project):
        resp = client.post(f"/api/projects/{project['id']}/pledges", json={"amount": 10})
        assert resp.status_code == 401

    def test_pledge_on_unknown_project_is_404(self, client, backer):
        headers, _ = backer
        resp = client.post("/api/projects/nope/pledges", json={"amount": 10}, headers=headers)
        assert resp.status_code == 404

    def test_pledge_history_is_ascending(self, client, data, project):
        data.table("pledges").insert([
            {"amount": 5, "project_id": project["id"], "user_id": "u2", "created_at": "2026-10-02T00:00:00.000Z"},
            {"amount": 7, "project_id": project["id"], "user_id": "u3", "created_at": "2026-10-01T00:00:00.000Z"},
        ]).execute()
        resp = client.get(f"/api/projects/{project['id']}/pledges")
        assert resp.status_code == 200
        assert [p["amount"] for p in resp.json()] == [7, 5]


class TestUpdates:
    """POST/GET /api/projects/{id}/updates"""

    def test_owner_can_post_and_list_is_newest_first(self, client, data, project, owner):
        headers, owner_id = owner
        data.table("updates").insert({
            "content": "Prototype built", "project_id": project["id"], "user_id": owner_id,
            "created_at": "2020-01-01T00:00:00.000Z",
        }).execute()

        resp = client.post(f"/api/projects/{project['id']}/updates", json={"content": "Shipping soon"}, headers=headers)
        assert resp.status_code == 200, resp.text
        assert [u["content"] for u in resp.json()] == ["Shipping soon", "Prototype built"]
        assert [u["content"] for u in client.get(f"/api/projects/{project['id']}/updates").json()] == [
            "Shipping soon", "Prototype built",
        ]

    def test_non_owner_is_forbidden(self, client, data, project, backer):
        headers, _ = backer
        resp = client.post(f"/api/projects/{project['id']}/updates", json={"content": "Hi"}, headers=headers)
        assert resp.status_code == 403
        assert resp.json() == {"error": "Only the project owner can post updates"}
        assert data.table("updates").select("*").execute().data == []

    def test_blank_content_is_422(self, client, project, owner):
        headers, _ = owner
        resp = client.post(f"/api/projects/{project['id']}/updates", json={"content": "   "}, headers=headers)
        assert resp.status_code == 422

    def test_requires_auth(self, client, project):
        resp = client.post(f"/api/projects/{project['id']}/updates", json={"content": "Hi"})
        assert resp.status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
