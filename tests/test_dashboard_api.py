"""
Tests for the dashboard endpoint and the seeding CLI commands.
"""
import pytest

from nexusorder.models import Order, WorkflowStatus


@pytest.fixture
def demo_data(app, runner):
    result = runner.invoke(args=["seed-data", "--demo"])
    assert result.exit_code == 0
    assert "Demo data seeded." in result.output


@pytest.mark.integration
def test_seed_data_is_idempotent(app, runner):
    runner.invoke(args=["seed-data", "--demo"])
    runner.invoke(args=["seed-data", "--demo"])

    with app.app_context():
        assert Order.query.count() == 2
        assert WorkflowStatus.query.count() == 7
        order = Order.query.filter_by(po_number="OC-9982").one()
        assert [h.action for h in order.history] == ["Creación"]
        assert float(order.total_value) == 10200.0


@pytest.mark.integration
def test_dashboard_kpis(viewer_client, demo_data):
    response = viewer_client.get("/dashboard/", query_string={"today": "2023-11-10"})
    assert response.status_code == 200
    data = response.get_json()

    summary = data["summary"]
    assert summary["total_revenue"] == 25200.0
    assert summary["total_cost"] == 14000.0
    assert summary["total_margin"] == 11200.0
    assert summary["margin_percent"] == 44.44
    assert summary["active_count"] == 2
    assert summary["billed_count"] == 0

    follow_up = summary["follow_up"]
    assert [row["client"] for row in follow_up] == ["Banco Futuro", "Retail Giants"]
    assert [row["days_left"] for row in follow_up] == [5, 21]

    assert data["monthly_trend"] == [{"period": "2023-10", "value": 25200.0}]
    assert {row["name"] for row in data["revenue_by_company"]} == {"Tech Solutions S.A.", "Innovate Corp"}
    assert data["top_clients"][0] == {"name": "Retail Giants", "value": 7000.0}
    assert data["top_contractors"][1] == {"name": "DevSquad External", "value": 4200.0}


@pytest.mark.integration
def test_dashboard_rejects_bad_date(viewer_client):
    assert viewer_client.get("/dashboard/", query_string={"today": "ayer"}).status_code == 400


@pytest.mark.integration
def test_dashboard_empty_portfolio(viewer_client):
    data = viewer_client.get("/dashboard/").get_json()
    assert data["summary"]["total_revenue"] == 0.0
    assert data["summary"]["margin_percent"] == 0.0
    assert data["monthly_trend"] == []
