"""API tests for settings, the activity log and the community board."""

import pytest
from fastapi.testclient import TestClient

import community


@pytest.fixture
def community_on(client: TestClient, admin_headers: dict) -> None:
    response = client.put("/api/settings/community", json={"enabled": True}, headers=admin_headers)
    assert response.status_code == 200


def test_default_settings(client: TestClient) -> None:
    assert client.get("/api/settings").json() == {
        "view_mode": "cards",
        "community_enabled": False,
        "show_dates": True,
    }


def test_update_view_mode(client: TestClient, admin_headers: dict) -> None:
    response = client.put("/api/settings", json={"view_mode": "list"}, headers=admin_headers)
    assert response.json()["view_mode"] == "list"

    assert client.put("/api/settings", json={"view_mode": "grid"}, headers=admin_headers).status_code == 422


def test_toggle_show_dates_is_logged(client: TestClient, admin_headers: dict) -> None:
    client.put("/api/settings/show-dates", json={"show_dates": False}, headers=admin_headers)

    assert client.get("/api/settings").json()["show_dates"] is False
    entry = client.get("/api/logs", headers=admin_headers).json()["logs"][0]
    assert (entry["action"], entry["entity"], entry["details"]) == ("EDIT", "SETTINGS", "Show dates disabled")


def test_settings_are_admin_only(client: TestClient, make_subadmin) -> None:
    helper = make_subadmin(can_manage_category=True)
    assert client.put("/api/settings", json={"view_mode": "list"}, headers=helper["headers"]).status_code == 403
    assert client.put("/api/settings/community", json={"enabled": True}, headers=helper["headers"]).status_code == 403


def test_logs_are_admin_only(client: TestClient, make_subadmin) -> None:
    helper = make_subadmin()
    assert client.get("/api/logs", headers=helper["headers"]).status_code == 403
    assert client.get("/api/logs").status_code == 401


def test_logs_pagination(client: TestClient, admin_headers: dict, make_category) -> None:
    for name in ("A", "B", "C"):
        make_category(name)

    page = client.get("/api/logs", params={"page": 2, "limit": 2}, headers=admin_headers).json()

    # One login plus three category additions
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 4, "pages": 2}
    assert [e["action"] for e in page["logs"]] == ["ADD", "LOGIN"]


def test_logs_have_no_write_routes(client: TestClient, admin_headers: dict) -> None:
    assert client.post("/api/logs", json={}, headers=admin_headers).status_code == 405
    assert client.delete("/api/logs", headers=admin_headers).status_code == 405


def test_community_is_closed_by_default(client: TestClient) -> None:
    assert client.get("/api/community").status_code == 403
    assert client.post("/api/community", json={"content": "hello"}).status_code == 403


def test_post_and_reply(client: TestClient, community_on) -> None:
    post = client.post("/api/community", json={"content": "Jai Shri Ram"})
    assert post.status_code == 201
    assert "ip_address" not in post.json()

    reply = client.post(f"/api/community/{post.json()['id']}/reply", json={"content": "Jai ho"})
    assert [r["content"] for r in reply.json()["replies"]] == ["Jai ho"]

    listed = client.get("/api/community").json()
    assert listed[0]["content"] == "Jai Shri Ram"


def test_abusive_post_is_rejected(client: TestClient, community_on) -> None:
    response = client.post("/api/community", json={"content": "you idiot"})
    assert response.status_code == 400
    assert "inappropriate" in response.json()["detail"]


def test_content_filter_is_pluggable(client: TestClient, community_on) -> None:
    original = client.app.state.content_filter
    client.app.state.content_filter = community.BlocklistFilter(["laddoo"])
    try:
        assert client.post("/api/community", json={"content": "you idiot"}).status_code == 201
        assert client.post("/api/community", json={"content": "more laddoo"}).status_code == 400
    finally:
        client.app.state.content_filter = original


def test_moderation(client: TestClient, admin_headers: dict, make_subadmin, community_on) -> None:
    post_id = client.post("/api/community", json={"content": "Hello"}).json()["id"]
    helper = make_subadmin()

    admin_view = client.get("/api/community/admin", headers=admin_headers).json()
    assert admin_view[0]["ip_address"] == "testclient"

    assert client.delete(f"/api/community/{post_id}", headers=helper["headers"]).status_code == 403
    assert client.delete(f"/api/community/{post_id}", headers=admin_headers).status_code == 200
    assert client.get("/api/community").json() == []


def test_export_csv_and_json(client: TestClient, admin_headers: dict, make_category, add_donation) -> None:
    category = make_category("A")
    add_donation("Ram", category["id"], amount=500)

    csv_response = client.get("/api/donations/export", params={"format": "csv"}, headers=admin_headers)
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=donations_" in csv_response.headers["content-disposition"]
    assert "Ram,500" in csv_response.text

    backup = client.get("/api/donations/export", params={"format": "json"}, headers=admin_headers).json()
    assert backup["donations"][0]["donor_name"] == "Ram"
    assert backup["categories"][0]["name"] == "A"


def test_export_is_admin_only(client: TestClient, make_subadmin) -> None:
    helper = make_subadmin()
    assert client.get("/api/donations/export", headers=helper["headers"]).status_code == 403


def test_import_csv(client: TestClient, admin_headers: dict, make_category) -> None:
    category = make_category("A")
    content = "Name,Amount,Date\nRam,500,2024-01-15\n,10,2024-01-15\nSita,,\n".encode("utf-8")

    response = client.post(
        "/api/donations/import",
        data={"category_id": str(category["id"]), "has_headers": "true"},
        files={"file": ("donations.csv", content, "text/csv")},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success_count": 2, "error_count": 1, "errors": ["Row 2: Donor name is required"]}
    assert len(client.get("/api/donations", headers=admin_headers).json()) == 2


def test_import_rejects_empty_file(client: TestClient, admin_headers: dict, make_category) -> None:
    category = make_category("A")
    response = client.post(
        "/api/donations/import",
        data={"category_id": str(category["id"])},
        files={"file": ("empty.csv", b"", "text/csv")},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_import_with_unparseable_amount_logs_every_created_row(
    client: TestClient, admin_headers: dict, make_category
) -> None:
    category = make_category("A")
    content = b"Name,Amount,Date\nRam,100,2024-01-15\nSita,nan,2024-01-15\nMohan,1e400,2024-01-15\n"

    response = client.post(
        "/api/donations/import",
        data={"category_id": str(category["id"])},
        files={"file": ("donations.csv", content, "text/csv")},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["success_count"] == 1
    assert response.json()["error_count"] == 2

    logs = client.get("/api/logs", headers=admin_headers).json()["logs"]
    imported = [e for e in logs if e["details"].startswith("Imported donation")]
    assert [e["details"] for e in imported] == ["Imported donation (approved): Ram - ₹100"]
