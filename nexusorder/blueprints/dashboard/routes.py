"""
Dashboard route: KPIs and portfolio roll-ups over every order.

Numbers are recomputed per request (no caching).
"""

from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request

from ...models import Order
from ...portfolio import (
    count_by_status,
    dashboard_summary,
    margin_by_client,
    margin_by_contractor,
    margin_by_service,
    monthly_revenue_trend,
    revenue_by_company,
)
from ...security import login_required_json
from ...storage import read_with_retry
from ...utils import parse_optional_date

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


def _pairs(items):
    return [{"name": key, "value": float(value)} for key, value in items]


@dashboard_bp.route("/", methods=["GET"])
@login_required_json
def overview():
    try:
        today = parse_optional_date(request.args.get("today"), "today") or date.today()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    orders = read_with_retry(lambda: Order.query.all())

    summary = dashboard_summary(orders, today)
    summary_json = {
        key: (float(value) if key.startswith("total_") or key == "margin_percent" else value)
        for key, value in summary.items()
        if key != "follow_up"
    }
    summary_json["follow_up"] = [dict(row, percent=float(row["percent"])) for row in summary["follow_up"]]

    return jsonify(
        {
            "summary": summary_json,
            "revenue_by_company": _pairs(revenue_by_company(orders).items()),
            "count_by_status": [{"name": k, "value": int(v)} for k, v in count_by_status(orders).items()],
            "monthly_trend": [{"period": p, "value": float(v)} for p, v in monthly_revenue_trend(orders)],
            "top_clients": _pairs(margin_by_client(orders)),
            "top_services": _pairs(margin_by_service(orders)),
            "top_contractors": _pairs(margin_by_contractor(orders)),
        }
    )
