"""Tests for the HTTP API."""

import time
import uuid

import pytest
from fastapi.testclient import TestClient

from journeyflow.api import create_app
from journeyflow.service import JourneyService
from journeyflow.transports import InMemoryTransport
from tests.helpers import make_config


@pytest.fixture
def client():
    config = make_config()
    service = JourneyService(config, transport=InMemoryTransport())
    with TestClient(create_app(config, service)) as test_client:
        yield test_client


def _wait_for(client: TestClient, path: str, predicate, timeout: float = 3.0) -> dict:
    """Poll ``path`` until ``predicate`` accepts the JSON body."""
    deadline = time.monotonic() + timeout
    while True:
        response = client.get(path)
        body = response.json()
        if response.status_code == 200 and predicate(body):
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"Timed out waiting on {path}: {body}")
        time.sleep(0.02)


def _signup(client: TestClient, name: str = "Alice") -> str:
    response = client.post(
        "/api/customers/signup",
        json={"name": name, "email": f"{name.lower()}@example.com"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    return body["data"]["id"]


def test_health_and_system_info(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["degraded"] is False

    info = client.get("/api/system/info").json()
    assert info["success"] is True
    assert [s["id"] for s in info["data"]["workflow"]["steps"]] == [1, 2, 3]
    assert info["data"]["transport"] == "InMemoryTransport"


def test_signup_visit_and_simulate_time(client):
    customer_id = _signup(client)
    workflow_path = f"/api/customers/{customer_id}/workflow"
    body = _wait_for(client, workflow_path, lambda b: b["data"]["completed_steps"] == [1])
    assert body["data"]["has_active_reminder"] is True

    response = client.post(
        f"/api/customers/{customer_id}/visit",
        json={"product_id": "P1", "product_name": "Trail Shoe", "category": "Shoes"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["category"] == "Shoes"
    _wait_for(client, workflow_path, lambda b: b["data"]["completed_steps"] == [1, 2])

    response = client.post(f"/api/customers/{customer_id}/simulate-time")
    assert response.json()["data"] == {"customer_id": customer_id, "triggered": True}
    body = _wait_for(client, workflow_path, lambda b: b["data"]["completed_steps"] == [1, 2, 3])
    assert body["data"]["current_step"] == 4
    assert body["data"]["has_active_reminder"] is False

    notifications = client.get(f"/api/customers/{customer_id}/notifications").json()
    assert [n["email_type"] for n in notifications["data"]] == ["welcome", "discount", "reminder"]

    response = client.post(f"/api/customers/{customer_id}/simulate-time")
    assert response.json()["data"]["triggered"] is False


def test_customer_lookup_and_listing(client):
    customer_id = _signup(client, "Bob")
    body = _wait_for(client, f"/api/customers/{customer_id}", lambda b: b["success"])
    assert body["data"]["name"] == "Bob"
    assert body["data"]["days_since_signup"] >= 0

    listing = client.get("/api/customers").json()
    assert listing["data"]["count"] == 1


def test_invalid_signup_is_rejected(client):
    response = client.post("/api/customers/signup", json={"name": "A", "email": "nope"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "Invalid email format" in body["error"]


def test_malformed_and_unknown_customer_ids(client):
    assert client.get("/api/customers/not-a-uuid").status_code == 400

    unknown = str(uuid.uuid4())
    response = client.get(f"/api/customers/{unknown}")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Customer not found"}

    response = client.post(
        f"/api/customers/{unknown}/visit", json={"product_id": "P1", "product_name": "Lamp"}
    )
    assert response.status_code == 404
    assert client.post(f"/api/customers/{unknown}/simulate-time").status_code == 404


def test_invalid_visit_is_rejected(client):
    customer_id = _signup(client)
    response = client.post(f"/api/customers/{customer_id}/visit", json={"product_id": "P1"})
    assert response.status_code == 400
    assert "Product name is required" in response.json()["error"]
