from fastapi.testclient import TestClient

from services.auth_service.app.export import DATA_CONTROLLER
from services.auth_service.app.main import app


def test_export_contains_only_the_callers_data(make_profile, make_order, auth_headers):
    customer = make_profile("customer", full_name="Ada Obi")
    neighbour = make_profile("customer")
    mine = make_order(customer=customer, total=3500)
    make_order(customer=neighbour, total=9900)

    with TestClient(app) as client:
        response = client.get("/account/export", headers=auth_headers(customer))

    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        f'attachment; filename="data-export-{customer.id}.json"'
    )
    body = response.json()
    assert body["data_controller"] == DATA_CONTROLLER
    assert body["subject"]["email"] == customer.email
    assert body["subject"]["full_name"] == "Ada Obi"
    assert [order["id"] for order in body["orders"]] == [mine.id]


def test_admin_export_is_still_scoped_to_self(make_profile, make_order, auth_headers):
    admin = make_profile("admin")
    make_order(total=1000)

    with TestClient(app) as client:
        response = client.get("/account/export", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["orders"] == []


def test_export_requires_a_session():
    with TestClient(app) as client:
        response = client.get("/account/export")
    assert response.status_code == 401
