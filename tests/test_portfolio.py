"""
Tests for dashboard aggregations.
"""
from datetime import date
from decimal import Decimal

import pytest

from conftest import make_log, make_order
from nexusorder.portfolio import (
    aggregate_by,
    count_by_status,
    dashboard_summary,
    margin_by_client,
    margin_by_contractor,
    margin_by_service,
    monthly_revenue_trend,
    revenue_by_company,
)


@pytest.fixture
def orders():
    return [
        make_order(id=1, selling_company="Acme", client_name="Banco Futuro", status="En Desarrollo",
                   quantity=Decimal("10"), unit_price=Decimal("100"), unit_cost=Decimal("60"),
                   date=date(2024, 1, 15)),
        make_order(id=2, selling_company="Beta", client_name="Retail Giants", status="Facturado",
                   quantity=Decimal("1"), unit_price=Decimal("500"), unit_cost=Decimal("100"),
                   date=date(2024, 2, 3), contractor_id=3, contractor_name="WebCrafters"),
        make_order(id=3, selling_company="Acme", client_name="Banco Futuro", status="Certificado",
                   quantity=Decimal("2"), unit_price=Decimal("50"), unit_cost=Decimal("0"),
                   date=date(2024, 2, 20)),
    ]


@pytest.mark.unit
def test_empty_input():
    assert revenue_by_company([]) == {}
    assert count_by_status([]) == {}
    assert monthly_revenue_trend([]) == []
    assert margin_by_client([]) == []
    summary = dashboard_summary([], date(2024, 6, 1))
    assert summary["total_revenue"] == 0
    assert summary["margin_percent"] == 0
    assert summary["active_count"] == 0
    assert summary["follow_up"] == []


@pytest.mark.unit
def test_revenue_by_company_conserves_total(orders):
    totals = revenue_by_company(orders)
    assert totals == {"Acme": Decimal("1100.00"), "Beta": Decimal("500.00")}
    assert sum(totals.values()) == Decimal("1600.00")


@pytest.mark.unit
def test_revenue_is_independent_of_order(orders):
    assert revenue_by_company(orders) == revenue_by_company(list(reversed(orders)))


@pytest.mark.unit
def test_count_by_status(orders):
    assert count_by_status(orders) == {"En Desarrollo": 1, "Facturado": 1, "Certificado": 1}


@pytest.mark.unit
def test_aggregate_by_starts_at_zero():
    result = aggregate_by(["a", "b", "a"], lambda x: x, lambda x: 2)
    assert result == {"a": Decimal("4"), "b": Decimal("2")}


@pytest.mark.unit
def test_monthly_trend_sorted_and_limited():
    orders = [make_order(date=date(2023, m, 1), unit_price=Decimal(m)) for m in range(1, 13)]
    orders.append(make_order(date=None))

    trend = monthly_revenue_trend(orders)
    assert [period for period, _ in trend] == [
        "2023-07", "2023-08", "2023-09", "2023-10", "2023-11", "2023-12",
    ]
    assert trend[-1][1] == Decimal("120.00")


@pytest.mark.unit
def test_margin_rankings(orders):
    assert margin_by_client(orders) == [
        ("Banco Futuro", Decimal("500.00")),
        ("Retail Giants", Decimal("400.00")),
    ]
    assert margin_by_service(orders) == [("Desarrollo Senior Java", Decimal("900.00"))]
    assert margin_by_contractor(orders) == [
        ("Sin Asignar", Decimal("500.00")),
        ("WebCrafters", Decimal("400.00")),
    ]


@pytest.mark.unit
def test_top_n_ties_keep_encounter_order():
    orders = [
        make_order(client_name=f"Cliente {i}", quantity=Decimal("1"), unit_price=Decimal("10"), unit_cost=Decimal("0"))
        for i in range(7)
    ]
    top = margin_by_client(orders)
    assert [name for name, _ in top] == ["Cliente 0", "Cliente 1", "Cliente 2", "Cliente 3", "Cliente 4"]


@pytest.mark.unit
def test_dashboard_summary(orders):
    orders.append(
        make_order(id=4, status="QA Cliente", commitment_date=date(2024, 6, 5),
                   quantity=Decimal("4"), progress_logs=[make_log(1)])
    )
    orders.append(make_order(id=5, status="En Análisis", commitment_date=date(2024, 5, 30)))

    summary = dashboard_summary(orders, today=date(2024, 6, 1))

    assert summary["total_revenue"] == Decimal("2790.00")
    assert summary["total_cost"] == Decimal("1400.00")
    assert summary["total_margin"] == Decimal("1390.00")
    assert summary["margin_percent"] == Decimal("49.82")
    assert summary["active_count"] == 3
    assert summary["billed_count"] == 1

    follow_up = summary["follow_up"]
    assert [row["id"] for row in follow_up] == [5, 4, 1]
    assert follow_up[0]["days_left"] == -2
    assert follow_up[1]["days_left"] == 4
    assert follow_up[1]["percent"] == Decimal("25.00")
    assert follow_up[2]["days_left"] is None


@pytest.mark.unit
def test_follow_up_is_limited_to_ten():
    orders = [make_order(id=i, commitment_date=date(2024, 6, 1 + i)) for i in range(15)]
    follow_up = dashboard_summary(orders, today=date(2024, 6, 1))["follow_up"]
    assert len(follow_up) == 10
    assert follow_up[0]["id"] == 0
