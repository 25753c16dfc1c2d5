import pytest

from app.auth import create_access_token


@pytest.mark.real_auth
def test_requests_without_a_token_are_rejected(client):
    response = client.get("/api/chart-of-accounts")
    assert response.status_code == 401


@pytest.mark.real_auth
def test_module_access_is_enforced(client):
    token = create_access_token({"sub": "clerk-7", "modules": ["JOURNAL"]})
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/api/journal-entries", headers=headers).status_code == 200
    forbidden = client.get("/api/reports/trial-balance", headers=headers)
    assert forbidden.status_code == 403
    assert "REPORTS" in forbidden.json()["detail"]


@pytest.mark.real_auth
def test_token_actor_is_recorded_on_entries(client, account_ids):
    token = create_access_token({"sub": "clerk-7", "modules": ["JOURNAL"]})
    response = client.post(
        "/api/journal-entries",
        headers={"Authorization": f"Bearer {token}"},
        json={
            "date": "2025-01-15",
            "lines": [
                {"account_id": account_ids["1000"], "debit": "10.00"},
                {"account_id": account_ids["4000"], "credit": "10.00"},
            ],
        },
    )
    assert response.status_code == 201
    assert response.json()["created_by"] == "clerk-7"


@pytest.mark.real_auth
def test_invalid_token_is_rejected(client):
    response = client.get("/api/journal-entries", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
