"""
Tests for the budget grid endpoints and exchange rates.
"""
import pytest

from nexusorder.models import BudgetEntry


def _category(client, name, type_, **extra):
    response = client.post("/budget/categories", json={"name": name, "type": type_, **extra})
    assert response.status_code == 201
    return response.get_json()["id"]


def _cell(client, company_id, category_id, month, quantity, unit_value, year=2024):
    return client.put(
        "/budget/entries",
        json={
            "company_id": company_id,
            "category_id": category_id,
            "year": year,
            "month": month,
            "quantity": quantity,
            "unit_value": unit_value,
        },
    )


@pytest.mark.integration
def test_category_validation(admin_client):
    assert admin_client.post("/budget/categories", json={"name": "Ventas", "type": "Otro"}).status_code == 400
    assert admin_client.post("/budget/categories", json={"type": "Ingreso"}).status_code == 400


@pytest.mark.integration
def test_categories_are_admin_only(ops_client):
    assert ops_client.post("/budget/categories", json={"name": "Ventas", "type": "Ingreso"}).status_code == 403


@pytest.mark.integration
def test_entry_amount_is_recomputed(app, admin_client, ops_client, master_data):
    category_id = _category(admin_client, "Ventas", "Ingreso")

    response = _cell(ops_client, master_data.company_id, category_id, 3, "2", "150,5")
    assert response.status_code == 200
    assert response.get_json()["amount"] == 301.0
    assert response.get_json()["month_date"] == "2024-03-01"

    response = _cell(ops_client, master_data.company_id, category_id, 3, 3, 100)
    assert response.get_json()["amount"] == 300.0

    with app.app_context():
        assert BudgetEntry.query.count() == 1


@pytest.mark.integration
def test_entry_rejects_bad_month(admin_client, ops_client, master_data):
    category_id = _category(admin_client, "Ventas", "Ingreso")
    assert _cell(ops_client, master_data.company_id, category_id, 13, 1, 1).status_code == 400
    assert _cell(ops_client, master_data.company_id, 999, 1, 1, 1).status_code == 404


@pytest.mark.integration
def test_viewer_cannot_edit_cells(admin_client, viewer_client, master_data):
    category_id = _category(admin_client, "Ventas", "Ingreso")
    assert _cell(viewer_client, master_data.company_id, category_id, 1, 1, 1).status_code == 403


@pytest.mark.integration
def test_replicate_to_remaining_months(admin_client, ops_client, master_data):
    category_id = _category(admin_client, "Sueldos", "Costo Indirecto")
    _cell(ops_client, master_data.company_id, category_id, 10, 2, 500)

    response = ops_client.post(
        "/budget/entries/replicate",
        json={"company_id": master_data.company_id, "category_id": category_id, "year": 2024, "month": 10},
    )
    data = response.get_json()
    assert [e["month_date"] for e in data] == ["2024-11-01", "2024-12-01"]
    assert all(e["amount"] == 1000.0 for e in data)


@pytest.mark.integration
def test_grid_with_actuals_and_usd(admin_client, ops_client, master_data):
    income_id = _category(admin_client, "Ventas", "Ingreso", order_index=0)
    cost_id = _category(admin_client, "Contratistas", "Costo Directo", order_index=1)
    _category(admin_client, "Solo otra empresa", "Ingreso", assigned_company_ids=[master_data.company_id + 100])

    _cell(ops_client, master_data.company_id, income_id, 6, 10, 100)
    _cell(ops_client, master_data.company_id, cost_id, 6, 1, 200)
    ops_client.put("/budget/rates", json={"year": 2024, "month": 6, "rate": 800})
    ops_client.post(
        "/orders/",
        json={"selling_company": "Acme", "service_name": "Desarrollo Senior Java", "date": "2024-06-01", "quantity": 10},
    )

    response = ops_client.get("/budget/grid", query_string={"company_id": master_data.company_id, "year": 2024})
    assert response.status_code == 200
    data = response.get_json()

    assert [row["name"] for row in data["sections"]["Ingreso"]["rows"]] == ["Ventas"]
    assert data["sections"]["Ingreso"]["total"] == 1000.0
    assert data["net_result"][5] == 800.0
    assert data["net_total"] == 800.0
    assert data["net_result_usd"][5] == 1.0
    assert data["net_result_usd"][0] is None
    assert data["rates"][5] == 800.0
    assert data["actual_revenue"][5] == 850.0
    assert len(data["cells"]) == 2


@pytest.mark.integration
def test_grid_requires_company(ops_client):
    assert ops_client.get("/budget/grid").status_code == 400


@pytest.mark.integration
def test_rates_upsert(ops_client):
    assert ops_client.put("/budget/rates", json={"year": 2024, "month": 1, "rate": -1}).status_code == 400

    ops_client.put("/budget/rates", json={"year": 2024, "month": 2, "rate": 900})
    ops_client.put("/budget/rates", json={"year": 2024, "month": 1, "rate": 850})
    ops_client.put("/budget/rates", json={"year": 2024, "month": 1, "rate": 870})

    data = ops_client.get("/budget/rates", query_string={"year": 2024}).get_json()
    assert [(r["month"], r["rate"]) for r in data] == [(1, 870.0), (2, 900.0)]


@pytest.mark.integration
def test_delete_category_removes_its_cells(app, admin_client, ops_client, master_data):
    category_id = _category(admin_client, "Ventas", "Ingreso")
    _cell(ops_client, master_data.company_id, category_id, 1, 1, 1)

    assert admin_client.delete(f"/budget/categories/{category_id}").status_code == 200
    with app.app_context():
        assert BudgetEntry.query.count() == 0


@pytest.mark.integration
@pytest.mark.parametrize("year", [10000, -1])
def test_out_of_range_year_is_rejected(admin_client, ops_client, master_data, year):
    category_id = _category(admin_client, "Ventas", "Ingreso")

    response = ops_client.get("/budget/grid", query_string={"company_id": master_data.company_id, "year": year})
    assert response.status_code == 400
    assert ops_client.get("/budget/rates", query_string={"year": year}).status_code == 400
    assert _cell(ops_client, master_data.company_id, category_id, 1, 1, 1, year=year).status_code == 400
    assert ops_client.put("/budget/rates", json={"year": year, "month": 1, "rate": 900}).status_code == 400

    response = ops_client.post(
        "/budget/entries/replicate",
        json={"company_id": master_data.company_id, "category_id": category_id, "year": year, "month": 1},
    )
    assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf"])
def test_non_finite_budget_values_are_rejected(admin_client, ops_client, master_data, value):
    category_id = _category(admin_client, "Ventas", "Ingreso")
    assert _cell(ops_client, master_data.company_id, category_id, 1, value, 1).status_code == 400
    assert ops_client.put("/budget/rates", json={"year": 2024, "month": 1, "rate": value}).status_code == 400
