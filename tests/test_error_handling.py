"""Tests for error handling with RFC 7807 Problem Details."""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from src.application.quotation_service import SessionRegistry
from src.infrastructure.database.database import get_session
from src.main import app
from src.presentation.api_routes import get_registry

BASE = "/api/v1/quotations/QT-2025-101"


@pytest.fixture(name="client")
def client_fixture(session: Session, registry: SessionRegistry):
    """Create test client with database session and session registry."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_registry] = lambda: registry
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()


def _assert_problem(data: dict, status: int, instance: str) -> None:
    assert "type" in data
    assert "title" in data
    assert data["status"] == status
    assert "detail" in data
    assert data["instance"] == instance


def test_request_validation_returns_problem_details(client):
    """Pydantic validation failures use the validation problem type."""
    response = client.post(f"{BASE}/floors", json={})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    _assert_problem(data, 400, f"{BASE}/floors")
    assert data["type"].endswith("/validation-failed")

    error = data["errors"][0]
    assert error["field"] == "name"
    assert "code" in error
    assert "message" in error


def test_negative_amount_rejected(client):
    response = client.post(f"{BASE}/items", json={"name": "Sofa", "amount": -5})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "amount"


def test_domain_validation_error(client):
    response = client.put(f"{BASE}/settings", json={"gst_rate": 7})

    assert response.status_code == 400
    data = response.json()
    _assert_problem(data, 400, f"{BASE}/settings")
    assert "GST rate" in data["detail"]
    assert data["errors"][0]["field"] == "gst_rate"


def test_invalid_row_name(client):
    response = client.post(f"{BASE}/items", json={"name": "Two\nlines"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "field_invalid_format"


def test_invalid_move_direction(client):
    row = client.post(f"{BASE}/items", json={"name": "Sofa"}).json()["row"]

    response = client.post(
        f"{BASE}/items/{row['id']}/move", json={"direction": "sideways"}
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "direction"


def test_unknown_section(client):
    response = client.post(f"{BASE}/items", json={"name": "x", "section": "attic"})
    assert response.status_code == 400
    assert "Unknown section" in response.json()["detail"]


def test_missing_row_returns_not_found(client):
    response = client.patch(f"{BASE}/items/missing", json={"rate": 10})

    assert response.status_code == 404
    data = response.json()
    _assert_problem(data, 404, f"{BASE}/items/missing")
    assert data["type"].endswith("/resource-not-found")
    assert data["resource_type"] == "row"
    assert data["resource_id"] == "missing"

    assert client.delete(f"{BASE}/items/missing").status_code == 404
    assert (
        client.post(f"{BASE}/items/missing/move", json={"direction": "up"}).status_code
        == 404
    )


def test_missing_after_id_returns_not_found(client):
    response = client.post(f"{BASE}/items", json={"name": "x", "after_id": "nope"})
    assert response.status_code == 404


def test_missing_version_returns_not_found(client):
    response = client.get(f"{BASE}/versions/nope")

    assert response.status_code == 404
    assert response.json()["resource_type"] == "version"

    assert client.post(f"{BASE}/versions/nope/load").status_code == 404
    assert client.delete(f"{BASE}/versions/nope").status_code == 404

    version = client.post(f"{BASE}/versions").json()
    compare = client.get(
        f"{BASE}/versions/compare", params={"from_id": version["id"], "to_id": "nope"}
    )
    assert compare.status_code == 404


def test_delete_unknown_quotation(client):
    response = client.delete("/api/v1/quotations/QT-0000-000")

    assert response.status_code == 404
    assert response.json()["resource_type"] == "quotation"


def test_unexpected_error_returns_problem_details(client, monkeypatch):
    from src.application.quotation_service import QuotationSession

    def broken(self):
        raise RuntimeError("boom")

    monkeypatch.setattr(QuotationSession, "totals", broken)

    response = client.get(BASE)

    assert response.status_code == 500
    data = response.json()
    _assert_problem(data, 500, BASE)
    assert "boom" not in data["detail"]


def test_error_codes_are_consistent():
    from src.presentation.problem_details import ErrorCodes

    assert ErrorCodes.FIELD_REQUIRED == "field_required"
    assert ErrorCodes.FIELD_TOO_LONG == "field_too_long"
    assert ErrorCodes.RESOURCE_NOT_FOUND == "resource_not_found"


def test_problem_detail_factory():
    from src.presentation.problem_details import ProblemDetailFactory

    problem = ProblemDetailFactory.validation_failed(
        detail="Test validation error",
        instance="/test/path",
        field_errors=[{"field": "name", "code": "field_required", "message": "x"}],
    )
    assert problem.type.endswith("/validation-failed")
    assert problem.title == "Validation Failed"
    assert problem.status == 400
    assert problem.errors is not None
    assert problem.errors[0]["field"] == "name"

    not_found = ProblemDetailFactory.resource_not_found(
        resource_type="version", detail="Version not found", resource_id="v9"
    )
    assert not_found.status == 404
    assert not_found.resource_id == "v9"
