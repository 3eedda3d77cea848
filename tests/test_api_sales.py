"""
Tests for `api/routers/sales.py`.

Exercises the HTTP seam with FastAPI's TestClient against in-memory
repositories: status codes, error bodies and the role rules applied before
the sale service is called.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_sale_service
from api.main import app
from conftest import ADMIN_ID, EMPLOYEE_ID, MANAGER_ID, OTHER_EMPLOYEE_ID

ADMIN = {"X-User-Id": str(ADMIN_ID), "X-User-Role": "admin"}
MANAGER = {"X-User-Id": str(MANAGER_ID), "X-User-Role": "manager"}
EMPLOYEE = {"X-User-Id": str(EMPLOYEE_ID), "X-User-Role": "employee"}
OTHER_EMPLOYEE = {"X-User-Id": str(OTHER_EMPLOYEE_ID), "X-User-Role": "employee"}


@pytest.fixture
def client(service):
    app.dependency_overrides[get_sale_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _body(product_id, quantity=1, price="100.00", **extra):
    return {"products": [{"productId": str(product_id), "quantity": quantity, "price": price}], **extra}


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_principal_is_unauthorized(client) -> None:
    response = client.get("/api/v1/sales")

    assert response.status_code == 401
    assert response.json()["detail"] == {"message": "Unauthorized"}


def test_create_sale_deducts_stock(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)

    response = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=2), headers=EMPLOYEE)

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Sale created successfully"
    assert float(data["total_amount"]) == 200.0
    assert data["sale"]["status"] == "completed"
    assert data["sale"]["sold_by"] == str(EMPLOYEE_ID)
    assert product_repo.stock(tv.product_id) == 1


def test_create_sale_insufficient_stock_body(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=1)

    response = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=3), headers=ADMIN)

    assert response.status_code == 400
    assert response.json()["detail"] == {
        "message": "Insufficient stock for product TV. Available: 1, Requested: 3",
        "product_id": str(tv.product_id),
        "available": 1,
        "requested": 3,
        "line_index": 0,
    }
    assert product_repo.stock(tv.product_id) == 1


def test_create_sale_validation_error_names_line(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=1)

    response = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=0), headers=ADMIN)

    assert response.status_code == 400
    assert response.json()["detail"]["line_index"] == 0


def test_create_sale_rejects_sub_cent_price(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=5)

    response = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=3, price="10.005"), headers=ADMIN)

    assert response.status_code == 400
    assert response.json()["detail"]["line_index"] == 0
    assert product_repo.stock(tv.product_id) == 5


def test_create_sale_unknown_product(client) -> None:
    response = client.post("/api/v1/sales", json=_body(uuid4()), headers=ADMIN)

    assert response.status_code == 404


def test_employee_cannot_create_for_someone_else(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)

    response = client.post(
        "/api/v1/sales",
        json=_body(tv.product_id, sold_by=str(OTHER_EMPLOYEE_ID)),
        headers=EMPLOYEE,
    )

    assert response.status_code == 403
    assert response.json()["detail"]["message"] == "You can only create sales records for yourself"
    assert product_repo.stock(tv.product_id) == 3


def test_manager_can_create_for_employee(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)

    response = client.post(
        "/api/v1/sales",
        json=_body(tv.product_id, sold_by=str(EMPLOYEE_ID)),
        headers=MANAGER,
    )

    assert response.status_code == 201
    assert response.json()["sale"]["sold_by"] == str(EMPLOYEE_ID)


def test_status_change_round_trip(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=2), headers=ADMIN).json()["sale"]["sale_id"]

    cancelled = client.put(f"/api/v1/sales/{sale_id}", json={"status": "cancelled"}, headers=MANAGER)
    assert cancelled.status_code == 200
    assert cancelled.json()["message"] == "Sale updated successfully"
    assert product_repo.stock(tv.product_id) == 3

    completed = client.put(f"/api/v1/sales/{sale_id}", json={"status": "completed"}, headers=MANAGER)
    assert completed.status_code == 200
    assert completed.json()["sale"]["version"] == 3
    assert product_repo.stock(tv.product_id) == 1


def test_employee_cannot_change_status_or_items(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id), headers=EMPLOYEE).json()["sale"]["sale_id"]

    status_change = client.put(f"/api/v1/sales/{sale_id}", json={"status": "cancelled"}, headers=EMPLOYEE)
    assert status_change.status_code == 403
    assert status_change.json()["detail"]["message"] == "Only admins and managers can change the status of a sale"

    items_change = client.put(f"/api/v1/sales/{sale_id}", json=_body(tv.product_id, quantity=2), headers=EMPLOYEE)
    assert items_change.status_code == 403
    assert items_change.json()["detail"]["message"] == "Only admins and managers can update products"

    assert product_repo.stock(tv.product_id) == 2


def test_employee_can_edit_own_sale_date(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id), headers=EMPLOYEE).json()["sale"]["sale_id"]

    response = client.put(
        f"/api/v1/sales/{sale_id}",
        json={"sale_date": "2024-05-01T10:00:00Z"},
        headers=EMPLOYEE,
    )

    assert response.status_code == 200
    assert response.json()["sale"]["sale_date"].startswith("2024-05-01T10:00:00")


def test_other_employees_sale_is_not_visible(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id), headers=EMPLOYEE).json()["sale"]["sale_id"]

    assert client.get(f"/api/v1/sales/{sale_id}", headers=OTHER_EMPLOYEE).status_code == 404
    assert client.get(f"/api/v1/sales/{sale_id}", headers=EMPLOYEE).status_code == 200
    assert client.get(f"/api/v1/sales/{sale_id}", headers=ADMIN).status_code == 200


def test_list_sales_scopes_employees_to_their_own(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=10)
    client.post("/api/v1/sales", json=_body(tv.product_id), headers=EMPLOYEE)
    client.post("/api/v1/sales", json=_body(tv.product_id), headers=OTHER_EMPLOYEE)
    client.post("/api/v1/sales", json=_body(tv.product_id, status="pending"), headers=ADMIN)

    own = client.get("/api/v1/sales", headers=EMPLOYEE).json()
    assert own["pagination"]["total"] == 1
    assert own["sales"][0]["sold_by"] == str(EMPLOYEE_ID)

    everyone = client.get("/api/v1/sales", headers=ADMIN).json()
    assert everyone["pagination"]["total"] == 3

    pending = client.get("/api/v1/sales", params={"status": "pending"}, headers=MANAGER).json()
    assert pending["pagination"]["total"] == 1


def test_delete_requires_admin_or_manager(client, product_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id, quantity=2), headers=EMPLOYEE).json()["sale"]["sale_id"]

    forbidden = client.delete(f"/api/v1/sales/{sale_id}", headers=EMPLOYEE)
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["message"] == "Only admins and managers can delete sales"

    deleted = client.delete(f"/api/v1/sales/{sale_id}", headers=ADMIN)
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Sale deleted successfully"}
    assert product_repo.stock(tv.product_id) == 3


def test_unknown_sale_is_404(client) -> None:
    response = client.delete(f"/api/v1/sales/{uuid4()}", headers=ADMIN)

    assert response.status_code == 404
    assert response.json()["detail"]["message"] == "Sale not found"


def test_version_conflict_is_409(client, product_repo, sale_repo) -> None:
    tv = product_repo.add("TV", stock=3)
    sale_id = client.post("/api/v1/sales", json=_body(tv.product_id), headers=ADMIN).json()["sale"]["sale_id"]
    sale_repo.bump_version_before_next_write = True

    response = client.put(f"/api/v1/sales/{sale_id}", json={"status": "cancelled"}, headers=ADMIN)

    assert response.status_code == 409
    assert product_repo.stock(tv.product_id) == 2
