"""
Tests for per-order economics.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from conftest import make_log, make_order
from nexusorder.economics import compute_order_economics, progress_ratio, to_decimal
from nexusorder.models import Order, ProgressLogEntry


@pytest.mark.unit
def test_reference_scenario():
    order = make_order(
        quantity=Decimal("10"),
        unit_price=Decimal("85"),
        unit_cost=Decimal("50"),
        progress_logs=[make_log(4), make_log(7)],
    )

    economics = compute_order_economics(order)

    assert economics.total_value == Decimal("850.00")
    assert economics.cost == Decimal("500.00")
    assert economics.margin == Decimal("350.00")
    assert economics.margin_percent == Decimal("41.18")
    assert economics.progress_total == Decimal("11.00")
    assert economics.progress_percent == Decimal("100.00")


@pytest.mark.unit
def test_is_idempotent():
    order = make_order(progress_logs=[make_log(3)])
    assert compute_order_economics(order) == compute_order_economics(order)


@pytest.mark.unit
def test_zero_total_gives_zero_margin_percent():
    order = make_order(quantity=Decimal("5"), unit_price=Decimal("0"), unit_cost=Decimal("10"))
    economics = compute_order_economics(order)
    assert economics.total_value == Decimal("0.00")
    assert economics.margin == Decimal("-50.00")
    assert economics.margin_percent == Decimal("0")


@pytest.mark.unit
def test_zero_quantity_gives_zero_progress():
    order = make_order(quantity=Decimal("0"), progress_logs=[make_log(2)])
    economics = compute_order_economics(order)
    assert economics.progress_total == Decimal("2.00")
    assert economics.progress_percent == Decimal("0.00")
    assert progress_ratio(order) == Decimal("0")


@pytest.mark.unit
def test_legacy_records_with_missing_fields():
    order = SimpleNamespace(quantity=None, unit_price=Decimal("10"), unit_cost=None, progress_logs=None)
    economics = compute_order_economics(order)
    assert economics.total_value == Decimal("0.00")
    assert economics.cost == Decimal("0.00")
    assert economics.progress_total == Decimal("0.00")

    order = SimpleNamespace(quantity=Decimal("2"), unit_price=Decimal("10"), unit_cost=None)
    economics = compute_order_economics(order)
    assert economics.total_value == Decimal("20.00")
    assert economics.margin == Decimal("20.00")
    assert economics.margin_percent == Decimal("100.00")


@pytest.mark.unit
def test_progress_ratio_is_unclamped():
    order = make_order(quantity=Decimal("4"), progress_logs=[make_log(6)])
    assert progress_ratio(order) == Decimal("1.5")
    assert compute_order_economics(order).progress_percent == Decimal("100.00")


@pytest.mark.unit
def test_partial_progress_rounds_half_up():
    order = make_order(quantity=Decimal("3"), progress_logs=[make_log(1)])
    assert compute_order_economics(order).progress_percent == Decimal("33.33")

    order = make_order(quantity=Decimal("8"), progress_logs=[make_log(1)])
    assert compute_order_economics(order).progress_percent == Decimal("12.50")


@pytest.mark.unit
def test_as_dict_is_json_friendly():
    data = compute_order_economics(make_order()).as_dict()
    assert data == {
        "total_value": 850.0,
        "cost": 500.0,
        "margin": 350.0,
        "margin_percent": 41.18,
        "progress_total": 0.0,
        "progress_percent": 0.0,
    }


@pytest.mark.unit
def test_model_recalc_totals_uses_the_same_rule():
    order = Order(quantity=Decimal("2.5"), unit_price=Decimal("100"), unit_cost=Decimal("30"))
    order.progress_logs.append(ProgressLogEntry(quantity=Decimal("1")))
    order.recalc_totals()
    assert order.total_value == Decimal("250.00")
    assert compute_order_economics(order).progress_percent == Decimal("40.00")


@pytest.mark.unit
@pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", Decimal("NaN"), float("inf")])
def test_non_finite_stored_values_count_as_zero(value):
    assert to_decimal(value) == Decimal("0")

    economics = compute_order_economics(make_order(quantity=value, progress_logs=[make_log(2)]))
    assert economics.total_value == Decimal("0.00")
    assert economics.progress_percent == Decimal("0.00")

    economics = compute_order_economics(make_order(unit_cost=value))
    assert economics.cost == Decimal("0.00")
    assert economics.margin_percent == Decimal("100.00")
