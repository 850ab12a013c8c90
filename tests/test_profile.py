import pytest
from fastapi.testclient import TestClient

from freelance_forge.app.db.base import Base
from freelance_forge.app.db.session import engine
from freelance_forge.app.main import app


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_and_login(client: TestClient, email: str, password: str) -> str:
    client.post("/auth/register", json={"email": email, "password": password})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.json()["access_token"]


def test_get_profile_requires_auth():
    client = TestClient(app)
    resp = client.get("/profile/me")
    assert resp.status_code == 401


def test_get_profile_defaults_for_new_user():
    client = TestClient(app)
    email = "profile@example.com"
    token = register_and_login(client, email, "secret")
    resp = client.get("/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == email
    assert data["full_name"] is None
    assert data["address"] is None


def test_update_profile_address():
    client = TestClient(app)
    token = register_and_login(client, "profile2@example.com", "secret")
    headers = {"Authorization": f"Bearer {token}"}

    resp = client.put("/profile/me", json={"full_name": " Jane Doe ", "address": "Main Street 5"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Jane Doe"
    assert resp.json()["address"] == "Main Street 5"

    cleared = client.put("/profile/me", json={"address": "  "}, headers=headers)
    assert cleared.json()["address"] is None
    assert cleared.json()["full_name"] == "Jane Doe"


def test_profile_address_becomes_issuer_address():
    client = TestClient(app)
    token = register_and_login(client, "profile3@example.com", "secret")
    headers = {"Authorization": f"Bearer {token}"}
    client.put("/profile/me", json={"address": "Side Street 2"}, headers=headers)

    resp = client.post(
        "/invoices",
        json={
            "client_name": "Acme",
            "client_address": "Somewhere 1",
            "items": [{"description": "Work", "unit_price": 100}],
        },
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["issuer_address"] == "Side Street 2"
