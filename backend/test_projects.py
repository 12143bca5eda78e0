"""
Project lifecycle tests.

Run: pytest backend/test_projects.py -v
"""


class TestProjectRoundTrip:
    def test_read_back_matches_submitted_fields(self, client, make_tenant):
        acme = make_tenant("acme")
        submitted = {"name": "Launch", "description": "Ship v1", "status": "archived"}
        created = client.post("/projects", json=submitted, headers=acme["headers"])
        assert created.status_code == 201

        resp = client.get(f"/projects/{created.json()['data']['id']}", headers=acme["headers"])
        assert resp.status_code == 200
        project = resp.json()["data"]
        assert {k: project[k] for k in submitted} == submitted
        assert project["tenant_id"] == acme["tenant"]["id"]
        assert project["created_by"] == acme["user"]["id"]

    def test_defaults_when_omitted(self, client, make_tenant):
        acme = make_tenant("acme")
        project = client.post("/projects", json={"name": "Bare"}, headers=acme["headers"]).json()["data"]
        read = client.get(f"/projects/{project['id']}", headers=acme["headers"]).json()["data"]
        assert read["name"] == "Bare"
        assert read["description"] is None
        assert read["status"] == "active"
