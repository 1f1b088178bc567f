"""
HTTP surface: routes, admin key, and structured error bodies.
The SQL dependency is overridden with an in-memory SQLite session.
"""
import os

from fastapi.testclient import TestClient

from account_fixtures import make_sqlite_sessionmaker

os.environ["ADMIN_API_KEY"] = "test-admin-key"

from simbank.config import get_bank_settings  # noqa: E402
from simbank.database import get_db  # noqa: E402
from simbank.main import app  # noqa: E402

ADMIN = {"X-Admin-Key": "test-admin-key"}


def _client() -> TestClient:
    get_bank_settings.cache_clear()
    SessionLocal = make_sqlite_sessionmaker()

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def _create(client: TestClient, username: str, referral_code=None) -> dict:
    response = client.post(
        "/api/accounts/",
        json={
            "username": username,
            "full_name": username.title(),
            "account_number": f"IT-{username}",
            "referral_code": referral_code,
        },
        headers=ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_is_public() -> None:
    client = _client()
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    print("✓ health endpoint")


def test_admin_routes_require_key() -> None:
    client = _client()
    body = {"username": "x", "full_name": "X", "account_number": "IT-x"}

    response = client.post("/api/accounts/", json=body)
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"

    response = client.post("/api/accounts/", json=body, headers={"X-Admin-Key": "wrong"})
    assert response.status_code == 401

    response = client.get("/api/admin/referrals")
    assert response.status_code == 401
    print("✓ admin routes need the key")


def test_top_up_transfer_and_ledger() -> None:
    client = _client()
    anna = _create(client, "anna")
    luca = _create(client, "luca")
    assert anna["display_balance"] == "0.00"

    response = client.post(f"/api/accounts/{anna['id']}/top-up", json={"amount": "100"}, headers=ADMIN)
    assert response.status_code == 200, response.text
    assert response.json()["account"]["certified_balance"] == "100.00"

    response = client.post(
        "/api/accounts/transfer",
        json={"from_account_id": anna["id"], "to_account_id": luca["id"], "amount": 30},
    )
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["success"] is True
    assert payload["amount"] == "30.00"
    assert payload["from_account"]["display_balance"] == "70.00"
    assert payload["to_account"]["display_balance"] == "30.00"
    assert payload["from_entry"]["direction"] == "expense"
    assert payload["to_entry"]["direction"] == "income"

    ledger = client.get(f"/api/transactions/{anna['id']}").json()
    assert sorted(entry["category"] for entry in ledger) == ["Ricariche", "Trasferimenti"]
    print("✓ top-up, transfer and ledger")


def test_error_bodies() -> None:
    client = _client()
    anna = _create(client, "anna")
    luca = _create(client, "luca")

    cases = [
        (
            "post",
            "/api/accounts/transfer",
            {"from_account_id": anna["id"], "to_account_id": luca["id"], "amount": 5},
            409,
            "insufficient_funds",
        ),
        (
            "post",
            "/api/accounts/transfer",
            {"from_account_id": anna["id"], "to_account_id": anna["id"], "amount": 5},
            400,
            "self_reference_rejected",
        ),
        (
            "post",
            "/api/accounts/transfer",
            {"from_account_id": anna["id"], "to_account_id": luca["id"], "amount": "2.5"},
            422,
            "invalid_amount",
        ),
        ("get", "/api/accounts/ghost", None, 404, "account_not_found"),
        ("post", f"/api/transactions/{anna['id']}/presets/no-such-preset", None, 404, "preset_not_found"),
        (
            "post",
            f"/api/transactions/{anna['id']}/manual",
            {"description": "Regalo", "amount": "10", "direction": "income", "category": "Rimborsi"},
            409,
            "recovery_exhausted",
        ),
    ]
    for method, url, body, status, code in cases:
        response = getattr(client, method)(url, json=body) if body is not None else getattr(client, method)(url)
        assert response.status_code == status, (url, response.text)
        assert response.json()["error"] == code
        assert response.json()["detail"]
    print("✓ structured error bodies")


def test_blank_manual_description_is_rejected() -> None:
    client = _client()
    anna = _create(client, "anna")
    client.post(f"/api/accounts/{anna['id']}/top-up", json={"amount": "50"}, headers=ADMIN)

    response = client.post(
        f"/api/transactions/{anna['id']}/manual",
        json={"description": "   ", "amount": "10", "direction": "expense", "category": "Rimborsi"},
    )
    assert response.status_code == 400, response.text
    assert "Description" in response.json()["detail"]
    assert client.get(f"/api/accounts/{anna['id']}").json()["display_balance"] == "50.00"
    assert len(client.get(f"/api/transactions/{anna['id']}").json()) == 1
    print("✓ blank manual description rejected")


def test_simulated_flows() -> None:
    client = _client()
    anna = _create(client, "anna")
    client.post(f"/api/accounts/{anna['id']}/top-up", json={"amount": "200"}, headers=ADMIN)

    response = client.post(f"/api/transactions/{anna['id']}/quick-random", json={"exclusions": []})
    assert response.status_code == 200, response.text
    quick = response.json()
    assert quick["entry"]["is_certified"] is False
    assert client.get(f"/api/accounts/{anna['id']}").json()["certified_balance"] == "200.00"

    response = client.post(f"/api/transactions/{anna['id']}/presets/eni-station", json={"amount": 50})
    assert response.status_code == 200, response.text
    preset = response.json()
    assert preset["applied_amount"] == "50.00"
    assert preset["account"]["certified_balance"] == "150.00"

    response = client.patch(
        f"/api/transactions/entry/{preset['entry']['id']}", json={"description": "ENI ROMA"}
    )
    assert response.status_code == 200
    assert response.json()["description"] == "ENI ROMA"
    assert client.get(f"/api/accounts/{anna['id']}").json()["certified_balance"] == "150.00"

    presets = client.get(f"/api/presets/{anna['id']}").json()
    keys = {preset["key"] for preset in presets}
    assert "eni-station" in keys and "stipendio-azienda-spa" in keys
    print("✓ simulated flows over HTTP")


def test_referral_admin_endpoints() -> None:
    client = _client()
    marco = _create(client, "marco")
    giulia = _create(client, "giulia", referral_code="marco")

    response = client.put("/api/admin/settings/referral-bonus", json={"amount": "75"}, headers=ADMIN)
    assert response.json() == {"amount": "75.00"}

    response = client.post(f"/api/accounts/{giulia['id']}/top-up", json={"amount": "2.00"}, headers=ADMIN)
    assert response.json()["referral_bonus_awarded"] is True
    assert response.json()["referrer_name"] == "Marco"

    assert client.get(f"/api/accounts/{marco['id']}").json()["display_balance"] == "75.00"
    referrals = client.get("/api/admin/referrals", headers=ADMIN).json()
    assert len(referrals) == 1
    assert referrals[0]["referrer_username"] == "marco"
    assert referrals[0]["referred_username"] == "giulia"
    assert referrals[0]["bonus_amount"] == "75.00"
    print("✓ referral admin endpoints")


if __name__ == "__main__":
    test_health_is_public()
    test_admin_routes_require_key()
    test_top_up_transfer_and_ledger()
    test_error_bodies()
    test_blank_manual_description_is_rejected()
    test_simulated_flows()
    test_referral_admin_endpoints()
    print("All API tests passed.")
