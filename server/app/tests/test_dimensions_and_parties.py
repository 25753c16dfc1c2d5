def _entry(account_ids, **line_extra):
    return {
        "date": "2025-02-01",
        "description": "Field office supplies",
        "lines": [
            {"account_id": account_ids["5000"], "debit": "120.00", **line_extra},
            {"account_id": account_ids["1000"], "credit": "120.00"},
        ],
    }


def test_cost_center_create_list_and_deactivate(client):
    response = client.post("/api/cost-centers", json={"code": "CC-NORTH", "name": "North Region"})
    assert response.status_code == 201, response.text
    cost_center = response.json()
    assert cost_center["is_active"] is True

    duplicate = client.post("/api/cost-centers", json={"code": "CC-NORTH", "name": "Again"})
    assert duplicate.status_code == 409

    updated = client.patch(f"/api/cost-centers/{cost_center['id']}", json={"is_active": False})
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    active = client.get("/api/cost-centers", params={"active": True}).json()
    assert all(row["code"] != "CC-NORTH" for row in active)

    assert client.patch("/api/cost-centers/999", json={"name": "Missing"}).status_code == 404


def test_journal_lines_require_active_dimensions(client, account_ids):
    project = client.post("/api/projects", json={"code": "PRJ-1", "name": "Warehouse fit-out"}).json()

    response = client.post("/api/journal-entries", json=_entry(account_ids, project_id=project["id"]))
    assert response.status_code == 201, response.text
    assert response.json()["lines"][0]["project_id"] == project["id"]

    client.patch(f"/api/projects/{project['id']}", json={"is_active": False})
    rejected = client.post("/api/journal-entries", json=_entry(account_ids, project_id=project["id"]))
    assert rejected.status_code == 404
    assert "Projects" in rejected.json()["detail"]

    unknown = client.post("/api/journal-entries", json=_entry(account_ids, cost_center_id=4242))
    assert unknown.status_code == 404


def test_party_crud_and_search(client):
    created = client.post(
        "/api/parties",
        json={"type": "VENDOR", "name": "Harbor Freight Lines", "email": "ap@harbor.example"},
    )
    assert created.status_code == 201
    party = created.json()

    vendors = client.get("/api/parties", params={"type": "VENDOR", "q": "harbor"}).json()
    assert [row["id"] for row in vendors] == [party["id"]]

    updated = client.patch(f"/api/parties/{party['id']}", json={"phone": "555-0100"})
    assert updated.json()["phone"] == "555-0100"
    assert client.get("/api/parties/9999").status_code == 404

    invalid = client.post("/api/parties", json={"type": "EMPLOYEE", "name": "Nobody"})
    assert invalid.status_code == 422


def test_inactive_customer_cannot_receive_invoices(client, customer_id):
    client.patch(f"/api/parties/{customer_id}", json={"is_active": False})
    response = client.post(
        "/api/invoices",
        json={
            "party_id": customer_id,
            "issue_date": "2025-03-01",
            "lines": [{"description": "Consulting", "quantity": "1", "rate": "100"}],
        },
    )
    assert response.status_code == 400
    assert "inactive" in response.json()["detail"]
