"""
Tests for master data, users and backup endpoints.
"""
import pytest

from nexusorder.models import AuditLog


@pytest.mark.integration
def test_company_crud_with_audit(app, admin_client):
    response = admin_client.post("/settings/companies", json={"name": "Tech Solutions S.A."})
    assert response.status_code == 201
    company_id = response.get_json()["id"]

    assert admin_client.post("/settings/companies", json={"name": "Tech Solutions S.A."}).status_code == 409

    response = admin_client.put(f"/settings/companies/{company_id}", json={"name": "Tech Solutions"})
    assert response.get_json()["name"] == "Tech Solutions"

    assert admin_client.delete(f"/settings/companies/{company_id}").status_code == 200
    assert admin_client.get("/settings/companies").get_json() == []

    with app.app_context():
        actions = [a.action for a in AuditLog.query.filter_by(entity_type="Company").order_by(AuditLog.id)]
        assert actions == ["CREATE", "UPDATE", "DELETE"]
        assert AuditLog.query.first().username_snapshot == "Jane Doe"


@pytest.mark.integration
def test_required_fields(admin_client):
    response = admin_client.post("/settings/clients", json={"tax_id": "X-1"})
    assert response.status_code == 400
    assert "name" in response.get_json()["error"]


@pytest.mark.integration
def test_unknown_resource_is_404(admin_client):
    assert admin_client.get("/settings/planets").status_code == 404


@pytest.mark.integration
def test_statuses_are_seeded_in_pipeline_order(ops_client):
    names = [s["name"] for s in ops_client.get("/settings/statuses").get_json()]
    assert names == [
        "En Análisis",
        "En Desarrollo",
        "QA Interno",
        "QA Cliente",
        "A Certificar",
        "Certificado",
        "Facturado",
    ]


@pytest.mark.integration
def test_new_status_goes_to_the_end(admin_client):
    data = admin_client.post("/settings/statuses", json={"name": "Cancelado", "color": "bg-red-100"}).get_json()
    assert data["sort_order"] == 8


@pytest.mark.integration
def test_price_entry_validation(admin_client, master_data):
    payload = {
        "service_name": "Soporte",
        "selling_company": "Acme",
        "unit_price": "1.500,50",
        "valid_from": "2024-12-31",
        "valid_to": "2024-01-01",
    }
    assert admin_client.post("/settings/prices", json=payload).status_code == 400

    payload["valid_from"] = "2024-01-01"
    payload["valid_to"] = "2024-12-31"
    data = admin_client.post("/settings/prices", json=payload).get_json()
    assert data["unit_price"] == 1500.5
    assert data["contractor_cost"] == 0.0
    assert data["client_id"] is None


@pytest.mark.integration
def test_user_management(admin_client):
    response = admin_client.post("/users/", json={"name": "Maria Gomez", "role": "Operaciones", "access_code": "4321"})
    assert response.status_code == 201
    user = response.get_json()
    assert user["initials"] == "MG"
    assert "access_code_hash" not in user

    assert admin_client.post("/users/", json={"name": "Maria Gomez", "role": "Lector"}).status_code == 409
    assert admin_client.post("/users/", json={"name": "Otro", "role": "Jefe"}).status_code == 400

    response = admin_client.put(f"/users/{user['id']}", json={"role": "Lector", "is_active": False})
    assert response.get_json()["role"] == "Lector"
    assert response.get_json()["is_active"] is False

    assert admin_client.delete(f"/users/{user['id']}").status_code == 200


@pytest.mark.integration
def test_admin_cannot_delete_self(app, admin_client):
    me = admin_client.get("/auth/me").get_json()
    assert admin_client.delete(f"/users/{me['id']}").status_code == 400


@pytest.mark.integration
def test_backup_contains_everything(admin_client, ops_client, master_data):
    ops_client.post(
        "/orders/",
        json={"selling_company": "Acme", "service_name": "Desarrollo Senior Java", "date": "2024-06-01"},
    )

    response = admin_client.get("/settings/backup")
    assert response.status_code == 200
    assert "attachment" in response.headers["Content-Disposition"]

    data = response.get_json()
    assert [c["name"] for c in data["companies"]] == ["Acme"]
    assert len(data["prices"]) == 2
    assert len(data["orders"]) == 1
    assert len(data["users"]) == 3

    assert ops_client.get("/settings/backup").status_code == 403


@pytest.mark.integration
@pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf"])
def test_price_entry_rejects_non_finite_amounts(admin_client, value):
    payload = {
        "service_name": "Soporte",
        "selling_company": "Acme",
        "unit_price": value,
        "valid_from": "2024-01-01",
        "valid_to": "2024-12-31",
    }
    response = admin_client.post("/settings/prices", json=payload)
    assert response.status_code == 400
    assert "unit_price" in response.get_json()["error"]
