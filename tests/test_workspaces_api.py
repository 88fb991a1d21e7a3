import pytest
from bson import ObjectId


def insight_body(name="jan.csv", **extra):
    body = {
        "fileName": name,
        "summary": "Revenue is up 12% month over month.",
        "insights": "Marketing spend drives most of the growth.",
        "recommendations": "Shift budget from events to paid search.",
    }
    body.update(extra)
    return body


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def workspace(client, alice, auth_headers):
    response = client.post(
        "/api/workspaces",
        json={"name": "  FY2024  ", "description": "Annual numbers"},
        headers=auth_headers(alice),
    )
    assert response.status_code == 201
    return response.json()["data"]


def test_create_workspace(workspace, alice):
    assert workspace["name"] == "FY2024"
    assert workspace["description"] == "Annual numbers"
    assert workspace["owner"] == str(alice["_id"])
    assert workspace["members"] == [str(alice["_id"])]
    assert workspace["financialInsights"] == []
    assert "id" in workspace and "createdAt" in workspace and "updatedAt" in workspace


def test_create_workspace_name_too_long(client, alice, auth_headers):
    response = client.post("/api/workspaces", json={"name": "x" * 101}, headers=auth_headers(alice))
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_create_workspace_requires_name(client, alice, auth_headers):
    response = client.post("/api/workspaces", json={"description": "no name"}, headers=auth_headers(alice))
    assert response.status_code == 400


def test_list_workspaces_only_shows_own(client, workspace, alice, bob, auth_headers):
    client.post("/api/workspaces", json={"name": "Bob's"}, headers=auth_headers(bob))

    response = client.get("/api/workspaces", headers=auth_headers(alice))
    body = response.json()
    assert response.status_code == 200
    assert body["count"] == 1
    assert [w["name"] for w in body["data"]] == ["FY2024"]


def test_get_workspace(client, workspace, alice, auth_headers):
    response = client.get(f"/api/workspaces/{workspace['id']}", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["data"]["id"] == workspace["id"]


def test_get_workspace_not_found(client, alice, auth_headers):
    for workspace_id in (str(ObjectId()), "not-an-id"):
        response = client.get(f"/api/workspaces/{workspace_id}", headers=auth_headers(alice))
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Workspace not found"}


def test_get_workspace_forbidden_for_stranger(client, workspace, bob, auth_headers):
    response = client.get(f"/api/workspaces/{workspace['id']}", headers=auth_headers(bob))
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to access this workspace"


def test_owner_updates_workspace(client, workspace, alice, auth_headers):
    response = client.put(
        f"/api/workspaces/{workspace['id']}",
        json={"name": "FY2024 (final)", "description": "Closed books"},
        headers=auth_headers(alice),
    )
    data = response.json()["data"]
    assert response.status_code == 200
    assert data["name"] == "FY2024 (final)"
    assert data["description"] == "Closed books"
    assert data["updatedAt"] >= workspace["updatedAt"]


def test_patch_is_partial(client, workspace, alice, auth_headers):
    response = client.patch(
        f"/api/workspaces/{workspace['id']}", json={"name": "Renamed"}, headers=auth_headers(alice)
    )
    assert response.status_code == 200
    assert response.json()["data"]["description"] == "Annual numbers"


def test_owner_cannot_be_reassigned(client, workspace, alice, bob, auth_headers):
    response = client.patch(
        f"/api/workspaces/{workspace['id']}",
        json={"owner": str(bob["_id"]), "members": [str(bob["_id"])]},
        headers=auth_headers(alice),
    )
    data = response.json()["data"]
    assert data["owner"] == str(alice["_id"])
    assert data["members"] == [str(alice["_id"]), str(bob["_id"])]


def test_member_can_read_and_add_insights_but_not_manage(client, workspace, alice, bob, auth_headers):
    client.patch(
        f"/api/workspaces/{workspace['id']}",
        json={"members": [str(bob["_id"])]},
        headers=auth_headers(alice),
    )
    url = f"/api/workspaces/{workspace['id']}"

    assert client.get(url, headers=auth_headers(bob)).status_code == 200
    assert client.post(f"{url}/insights", json=insight_body(), headers=auth_headers(bob)).status_code == 201
    assert client.put(url, json={"name": "mine"}, headers=auth_headers(bob)).status_code == 403
    assert client.delete(url, headers=auth_headers(bob)).status_code == 403

    listed = client.get("/api/workspaces", headers=auth_headers(bob)).json()
    assert listed["count"] == 1


def test_update_with_bad_member_id(client, workspace, alice, auth_headers):
    response = client.patch(
        f"/api/workspaces/{workspace['id']}", json={"members": ["nope"]}, headers=auth_headers(alice)
    )
    assert response.status_code == 400


def test_delete_workspace(client, workspace, alice, auth_headers):
    url = f"/api/workspaces/{workspace['id']}"
    response = client.delete(url, headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {}}
    assert client.get(url, headers=auth_headers(alice)).status_code == 404


def test_save_insight(client, workspace, alice, auth_headers):
    body = insight_body(
        charts=[
            {
                "type": "bar",
                "title": "Revenue by month",
                "data": {
                    "labels": ["Jan", "Feb"],
                    "datasets": [{"label": "Revenue", "data": [120, 140], "backgroundColor": "#4f46e5"}],
                },
            },
            {"type": "pie", "data": {"labels": ["Ops", "R&D"], "datasets": [{"data": [60, 40]}]}},
        ],
        assistantChat=[
            {"id": "1", "text": "Why did costs rise?", "sender": "user", "timestamp": "2024-03-01T10:00:00"},
            {"id": "2", "text": "Cloud spend doubled.", "sender": "assistant", "timestamp": "2024-03-01T10:00:05"},
        ],
        rawResponse='{"summary": "..."}',
    )
    response = client.post(f"/api/workspaces/{workspace['id']}/insights", json=body, headers=auth_headers(alice))

    data = response.json()["data"]
    assert response.status_code == 201
    assert data["fileName"] == "jan.csv"
    assert data["charts"][0]["data"]["datasets"][0]["backgroundColor"] == "#4f46e5"
    assert [c["type"] for c in data["charts"]] == ["bar", "pie"]
    assert [m["sender"] for m in data["assistantChat"]] == ["user", "assistant"]
    assert "id" in data and "createdAt" in data


def test_save_insight_missing_fields(client, workspace, alice, auth_headers):
    body = insight_body()
    body["recommendations"] = ""
    response = client.post(f"/api/workspaces/{workspace['id']}/insights", json=body, headers=auth_headers(alice))
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Please provide all required fields"}


def test_save_insight_bad_chart(client, workspace, alice, auth_headers):
    body = insight_body(charts=[{"type": "sankey", "data": {}}])
    response = client.post(f"/api/workspaces/{workspace['id']}/insights", json=body, headers=auth_headers(alice))
    assert response.status_code == 400


def test_save_insight_forbidden_for_stranger(client, workspace, bob, auth_headers):
    response = client.post(
        f"/api/workspaces/{workspace['id']}/insights", json=insight_body(), headers=auth_headers(bob)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to modify this workspace"


def test_get_insights_in_stored_order(client, workspace, alice, auth_headers):
    url = f"/api/workspaces/{workspace['id']}/insights"
    for name in ("q1.csv", "q2.csv", "q3.csv"):
        client.post(url, json=insight_body(name), headers=auth_headers(alice))

    response = client.get(url, headers=auth_headers(alice))
    body = response.json()
    assert body["count"] == 3
    assert [i["fileName"] for i in body["data"]] == ["q1.csv", "q2.csv", "q3.csv"]


def test_chart_and_chat_keep_extra_keys(client, workspace, alice, auth_headers):
    body = insight_body(
        charts=[{
            "type": "bar",
            "title": "Revenue",
            "description": "Revenue by quarter",
            "data": {"labels": ["Q1"], "datasets": [{"data": [10]}]},
        }],
        assistantChat=[
            {"id": "1", "text": "Explain Q1", "sender": "user", "timestamp": "2024-03-01T10:00:00", "pending": False},
        ],
    )
    url = f"/api/workspaces/{workspace['id']}/insights"
    client.post(url, json=body, headers=auth_headers(alice))

    stored = client.get(url, headers=auth_headers(alice)).json()["data"][0]
    assert stored["charts"][0]["description"] == "Revenue by quarter"
    assert stored["assistantChat"][0]["pending"] is False


def test_chart_type_is_case_insensitive(client, workspace, alice, auth_headers):
    body = insight_body(charts=[
        {"type": "Bar", "data": {"labels": ["a"], "datasets": [{"data": [1]}]}},
        {"type": "LINE", "data": {"labels": ["a"], "datasets": [{"data": [2]}]}},
    ])
    response = client.post(f"/api/workspaces/{workspace['id']}/insights", json=body, headers=auth_headers(alice))
    assert response.status_code == 201
    assert [c["type"] for c in response.json()["data"]["charts"]] == ["bar", "line"]


def test_form_encoded_workspace_requests(client, alice, bob, carol, auth_headers):
    created = client.post("/api/workspaces", data={"name": "From a form"}, headers=auth_headers(alice))
    assert created.status_code == 201
    url = f"/api/workspaces/{created.json()['data']['id']}"

    one = client.patch(url, data={"members": str(bob["_id"])}, headers=auth_headers(alice))
    assert one.json()["data"]["members"] == [str(alice["_id"]), str(bob["_id"])]

    several = client.patch(
        url, data={"members[]": [str(bob["_id"]), str(carol["_id"])]}, headers=auth_headers(alice)
    )
    assert several.json()["data"]["members"] == [str(alice["_id"]), str(bob["_id"]), str(carol["_id"])]
