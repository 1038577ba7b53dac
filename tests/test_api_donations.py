"""API tests for donation records, donor views and statistics."""

from fastapi.testclient import TestClient

import activity_log


def test_admin_donation_is_approved(client: TestClient, make_category, add_donation) -> None:
    category = make_category("गणेश चौक")
    donation = add_donation("श्री राम", category["id"], amount=500, notes="  for the hall ")

    assert donation["status"] == "approved"
    assert donation["notes"] == "for the hall"
    assert donation["category"]["name"] == "गणेश चौक"


def test_admin_may_leave_out_amount_and_date(client: TestClient, admin_headers: dict, make_category) -> None:
    category = make_category("A")
    response = client.post(
        "/api/donations", json={"donor_name": "Rajesh", "category_id": category["id"]}, headers=admin_headers
    )

    assert response.status_code == 201
    assert response.json()["amount"] == 0


def test_subadmin_donation_is_pending(client: TestClient, make_subadmin, make_category) -> None:
    category = make_category("A")
    helper = make_subadmin()
    body = {"donor_name": "Mohan", "category_id": category["id"], "amount": 1100, "date": "2024-02-01"}

    response = client.post("/api/donations", json=body, headers=helper["headers"])

    assert response.status_code == 201
    assert response.json()["status"] == "pending"


def test_subadmin_must_supply_amount_and_date(client: TestClient, make_subadmin, make_category) -> None:
    category = make_category("A")
    helper = make_subadmin()

    response = client.post(
        "/api/donations",
        json={"donor_name": "Mohan", "category_id": category["id"], "amount": 100},
        headers=helper["headers"],
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Amount and Date are required for Sub-admins"


def test_subadmin_without_add_permission_is_denied(client: TestClient, make_subadmin, make_category) -> None:
    category = make_category("A")
    helper = make_subadmin(can_add_donation=False)
    body = {"donor_name": "Mohan", "category_id": category["id"], "amount": 1, "date": "2024-02-01"}

    assert client.post("/api/donations", json=body, headers=helper["headers"]).status_code == 403


def test_subadmin_outside_assigned_category_is_denied(client: TestClient, make_subadmin, make_category) -> None:
    allowed, other = make_category("A"), make_category("B")
    helper = make_subadmin(assigned_categories=[allowed["id"]])
    body = {"donor_name": "Mohan", "amount": 1, "date": "2024-02-01"}

    ok = client.post("/api/donations", json={**body, "category_id": allowed["id"]}, headers=helper["headers"])
    denied = client.post("/api/donations", json={**body, "category_id": other["id"]}, headers=helper["headers"])

    assert ok.status_code == 201
    assert denied.status_code == 403


def test_anonymous_cannot_add(client: TestClient, make_category) -> None:
    category = make_category("A")
    response = client.post("/api/donations", json={"donor_name": "X", "category_id": category["id"]})
    assert response.status_code == 401


def test_invalid_payloads(client: TestClient, admin_headers: dict, make_category) -> None:
    category = make_category("A")
    for body in (
        {"donor_name": "   ", "category_id": category["id"]},
        {"donor_name": "Ram", "category_id": category["id"], "amount": -1},
    ):
        assert client.post("/api/donations", json=body, headers=admin_headers).status_code == 422

    missing = client.post("/api/donations", json={"donor_name": "Ram", "category_id": 999}, headers=admin_headers)
    assert missing.status_code == 404


def test_list_donations_restricted_to_assigned_categories(
    client: TestClient, make_subadmin, make_category, add_donation
) -> None:
    a, b = make_category("A"), make_category("B")
    add_donation("Ram", a["id"], amount=10)
    add_donation("Shyam", b["id"], amount=20)
    helper = make_subadmin(assigned_categories=[b["id"]])

    names = [d["donor_name"] for d in client.get("/api/donations", headers=helper["headers"]).json()]
    assert names == ["Shyam"]


def test_list_donations_newest_first_and_by_status(
    client: TestClient, admin_headers: dict, make_subadmin, make_category, add_donation
) -> None:
    category = make_category("A")
    add_donation("Old", category["id"], amount=1, date="2023-05-01")
    add_donation("New", category["id"], amount=1, date="2024-05-01")
    helper = make_subadmin()
    client.post(
        "/api/donations",
        json={"donor_name": "Waiting", "category_id": category["id"], "amount": 5, "date": "2024-01-01"},
        headers=helper["headers"],
    )

    all_names = [d["donor_name"] for d in client.get("/api/donations", headers=admin_headers).json()]
    pending = client.get("/api/donations", params={"status": "pending"}, headers=admin_headers).json()

    assert all_names == ["New", "Waiting", "Old"]
    assert [d["donor_name"] for d in pending] == ["Waiting"]


def test_edit_donation_needs_permission(client: TestClient, make_subadmin, make_category, add_donation) -> None:
    category = make_category("A")
    donation = add_donation("Ram", category["id"], amount=10)
    viewer = make_subadmin()
    editor = make_subadmin(can_edit_donation=True)

    url = f"/api/donations/{donation['id']}"
    assert client.put(url, json={"amount": 99}, headers=viewer["headers"]).status_code == 403

    response = client.put(url, json={"amount": 99}, headers=editor["headers"])
    assert response.status_code == 200
    assert response.json()["amount"] == 99
    assert response.json()["donor_name"] == "Ram"


def test_edit_cannot_move_donation_into_unassigned_category(
    client: TestClient, make_subadmin, make_category, add_donation
) -> None:
    a, b = make_category("A"), make_category("B")
    donation = add_donation("Ram", a["id"], amount=10)
    editor = make_subadmin(can_edit_donation=True, assigned_categories=[a["id"]])

    response = client.put(
        f"/api/donations/{donation['id']}", json={"category_id": b["id"]}, headers=editor["headers"]
    )
    assert response.status_code == 403


def test_edit_is_logged_with_before_and_after(
    client: TestClient, admin_headers: dict, make_category, add_donation
) -> None:
    category = make_category("A")
    donation = add_donation("Ram", category["id"], amount=10)
    client.put(f"/api/donations/{donation['id']}", json={"amount": 25}, headers=admin_headers)

    entry = client.get("/api/logs", headers=admin_headers).json()["logs"][0]
    assert entry["action"] == "EDIT"
    assert entry["details"] == "Edited donation: Ram - ₹10 → Ram - ₹25"


def test_approve_is_admin_only_and_idempotent(
    client: TestClient, admin_headers: dict, make_subadmin, make_category
) -> None:
    category = make_category("A")
    helper = make_subadmin(can_edit_donation=True, can_delete_donation=True, can_manage_category=True)
    created = client.post(
        "/api/donations",
        json={"donor_name": "Mohan", "category_id": category["id"], "amount": 5, "date": "2024-01-01"},
        headers=helper["headers"],
    ).json()
    url = f"/api/donations/{created['id']}/approve"

    assert client.put(url, headers=helper["headers"]).status_code == 403

    first = client.put(url, headers=admin_headers)
    second = client.put(url, headers=admin_headers)
    assert first.json()["status"] == "approved"
    assert second.status_code == 200

    approvals = [e for e in client.get("/api/logs", headers=admin_headers).json()["logs"] if e["action"] == "APPROVE"]
    assert len(approvals) == 1


def test_delete_donation(client: TestClient, admin_headers: dict, make_subadmin, make_category, add_donation) -> None:
    category = make_category("A")
    donation = add_donation("Ram", category["id"], amount=10)
    helper = make_subadmin()

    assert client.delete(f"/api/donations/{donation['id']}", headers=helper["headers"]).status_code == 403
    assert client.delete(f"/api/donations/{donation['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/donations/{donation['id']}", headers=admin_headers).status_code == 404


def test_audit_failure_does_not_undo_the_action(
    client: TestClient, admin_headers: dict, make_category, monkeypatch
) -> None:
    category = make_category("A")

    def broken(**kwargs):
        raise RuntimeError("log table unavailable")

    monkeypatch.setattr(activity_log, "ActivityLog", broken)

    response = client.post(
        "/api/donations", json={"donor_name": "Ram", "category_id": category["id"], "amount": 5}, headers=admin_headers
    )

    assert response.status_code == 201
    assert len(client.get("/api/donations", headers=admin_headers).json()) == 1


def test_public_donor_view_groups_and_hides_pending(
    client: TestClient, make_subadmin, make_category, add_donation
) -> None:
    category = make_category("गणेश चौक")
    add_donation("Ram", category["id"], amount=500, date="2024-01-01")
    add_donation("Ram ", category["id"], amount=300, date="2024-03-01")
    add_donation("Sita", category["id"])
    helper = make_subadmin()
    client.post(
        "/api/donations",
        json={"donor_name": "Pending Person", "category_id": category["id"], "amount": 9999, "date": "2024-01-01"},
        headers=helper["headers"],
    )

    donors = client.get("/api/donors").json()

    assert [d["donor_name"] for d in donors] == ["Ram", "Sita"]
    assert donors[0]["total"] == 800
    assert donors[0]["date"] == "2024-03-01"
    assert donors[0]["category_name"] == "गणेश चौक"
    assert len(donors[0]["history"]) == 2
    assert donors[1]["payment_status"] == "pledged"


def test_donor_filters(client: TestClient, make_category, add_donation) -> None:
    a, b = make_category("A"), make_category("B")
    add_donation("श्री राम", a["id"], amount=100)
    add_donation("Mohan", a["id"])
    add_donation("Shyam", b["id"], amount=50)

    search = client.get("/api/donors", params={"search": "shri"}).json()
    paid_in_a = client.get("/api/donors", params={"category_id": a["id"], "payment_status": "paid"}).json()
    pledged = client.get("/api/donors", params={"payment_status": "pledged"}).json()

    assert [d["donor_name"] for d in search] == ["श्री राम"]
    assert [d["donor_name"] for d in paid_in_a] == ["श्री राम"]
    assert [d["donor_name"] for d in pledged] == ["Mohan"]
    assert client.get("/api/donors", params={"payment_status": "refunded"}).status_code == 422


def test_donors_by_category_follow_display_order(
    client: TestClient, admin_headers: dict, make_category, add_donation
) -> None:
    a, b = make_category("A"), make_category("B")
    add_donation("Ram", a["id"], amount=100)
    add_donation("Shyam", b["id"], amount=50)
    client.put(f"/api/categories/{b['id']}/move-up", headers=admin_headers)

    sections = client.get("/api/donors/by-category").json()
    assert [s["category"]["name"] for s in sections] == ["B", "A"]


def test_stats(client: TestClient, make_subadmin, make_category, add_donation) -> None:
    category = make_category("A")
    add_donation("Ram", category["id"], amount=500)
    add_donation("ram", category["id"], amount=300)
    add_donation("Sita", category["id"])
    helper = make_subadmin()
    client.post(
        "/api/donations",
        json={"donor_name": "X", "category_id": category["id"], "amount": 1, "date": "2024-01-01"},
        headers=helper["headers"],
    )

    assert client.get("/api/stats").json() == {
        "total_donations": 3,
        "total_donors": 2,
        "total_amount": 800,
        "total_categories": 1,
        "pending_count": 1,
    }
