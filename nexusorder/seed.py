"""
nexusorder/seed.py

Seed default master data.

Rules:
- Safe to run multiple times (idempotent): rows are matched by name and only created when missing.
- seed_defaults(): workflow pipeline, units, service catalog, users (everything the app needs to boot).
- seed_demo_data(): companies, clients, contractors, price list, budget categories and two orders.

NOTE:
- Users are created without a personal access code; they log in with DEFAULT_ACCESS_CODE.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from .audit import record_order_change
from .extensions import db
from .models import (
    BUDGET_TYPE_DIRECT,
    BUDGET_TYPE_INCOME,
    BUDGET_TYPE_INDIRECT,
    ROLE_ADMIN,
    ROLE_OPERATIONS,
    ROLE_VIEWER,
    BudgetCategory,
    Client,
    Company,
    Contractor,
    Order,
    PriceListEntry,
    ServiceCatalogItem,
    UnitOfMeasure,
    User,
    WorkflowStatus,
)


DEFAULT_WORKFLOW = [
    # name, color
    ("En Análisis", "bg-gray-100 text-gray-800 border-gray-200"),
    ("En Desarrollo", "bg-blue-100 text-blue-800 border-blue-200"),
    ("QA Interno", "bg-purple-100 text-purple-800 border-purple-200"),
    ("QA Cliente", "bg-indigo-100 text-indigo-800 border-indigo-200"),
    ("A Certificar", "bg-yellow-100 text-yellow-800 border-yellow-200"),
    ("Certificado", "bg-emerald-100 text-emerald-800 border-emerald-200"),
    ("Facturado", "bg-green-100 text-green-800 border-green-200"),
]

DEFAULT_UNITS = ["Horas", "Mza", "HP", "Días", "Proyecto", "Story Points", "Licencia"]

DEFAULT_SERVICES = [
    ("Desarrollo Senior Java", "Desarrollo"),
    ("Consultoría SAP MM", "Consultoría"),
    ("Mantenimiento Mensual App", "Soporte"),
    ("Diseño UX/UI", "Diseño"),
    ("DevOps Cloud AWS", "Infraestructura"),
]

DEFAULT_USERS = [
    # name, role, initials
    ("Jane Doe", ROLE_ADMIN, "JD"),
    ("Carlos Ruiz", ROLE_OPERATIONS, "CR"),
    ("Visitante", ROLE_VIEWER, "VI"),
]

DEMO_COMPANIES = ["Tech Solutions S.A.", "Innovate Corp", "Global Services Ltd"]

DEMO_CLIENTS = [
    # name, tax_id, contact
    ("Banco Futuro", "BF-999", "Ana Lopez"),
    ("Retail Giants", "RG-888", "Pedro Martinez"),
    ("Logistica Express", "LE-777", "Sofia Ruiz"),
]

DEMO_CONTRACTORS = [
    # name, specialty, company
    ("DevSquad External", "Desarrollo Web", "Tech Solutions S.A."),
    ("Consultora Expertos", "SAP", "Global Services Ltd"),
    ("WebCrafters", "Diseño UI/UX", "Innovate Corp"),
    ("Interno", "General", "Tech Solutions S.A."),
]

DEMO_PRICE_LIST = [
    # service, company, contractor, client, unit, price, cost, from, to
    ("Desarrollo Senior Java", "Tech Solutions S.A.", "DevSquad External", None, "Horas",
     Decimal("85"), Decimal("50"), date(2023, 1, 1), date(2025, 12, 31)),
    ("Consultoría SAP MM", "Global Services Ltd", "Consultora Expertos", "Logistica Express", "Días",
     Decimal("600"), Decimal("400"), date(2023, 1, 1), date(2024, 12, 31)),
    ("Mantenimiento Mensual App", "Innovate Corp", "Interno", "Retail Giants", "Mza",
     Decimal("1500"), Decimal("0"), date(2023, 6, 1), date(2024, 6, 1)),
]

DEMO_BUDGET_CATEGORIES = [
    ("Ventas de Servicios", BUDGET_TYPE_INCOME),
    ("Contratistas", BUDGET_TYPE_DIRECT),
    ("Sueldos", BUDGET_TYPE_INDIRECT),
    ("Alquileres", BUDGET_TYPE_INDIRECT),
]


def _get_or_create(model, defaults=None, **filters):
    instance = model.query.filter_by(**filters).first()
    if instance:
        return instance, False
    instance = model(**filters, **(defaults or {}))
    db.session.add(instance)
    db.session.flush()
    return instance, True


def seed_defaults() -> None:
    """Create default workflow, units, services and users if they don't exist."""
    for idx, (name, color) in enumerate(DEFAULT_WORKFLOW, start=1):
        _get_or_create(WorkflowStatus, defaults={"color": color, "sort_order": idx}, name=name)

    for name in DEFAULT_UNITS:
        _get_or_create(UnitOfMeasure, name=name)

    for name, category in DEFAULT_SERVICES:
        _get_or_create(ServiceCatalogItem, defaults={"category": category}, name=name)

    for name, role, initials in DEFAULT_USERS:
        _get_or_create(User, defaults={"role": role, "initials": initials, "is_active": True}, name=name)

    db.session.commit()


def seed_demo_data() -> None:
    """Demo companies, clients, contractors, prices and orders (idempotent by name)."""
    for name in DEMO_COMPANIES:
        _get_or_create(Company, name=name)

    clients = {}
    for name, tax_id, contact in DEMO_CLIENTS:
        clients[name], _ = _get_or_create(Client, defaults={"tax_id": tax_id, "contact_name": contact}, name=name)

    contractors = {}
    for name, specialty, company in DEMO_CONTRACTORS:
        contractors[name], _ = _get_or_create(
            Contractor, defaults={"specialty": specialty, "company": company}, name=name
        )

    for service, company, contractor, client, unit, price, cost, valid_from, valid_to in DEMO_PRICE_LIST:
        exists = PriceListEntry.query.filter_by(service_name=service, selling_company=company).first()
        if exists:
            continue
        db.session.add(
            PriceListEntry(
                service_name=service,
                selling_company=company,
                contractor_id=contractors[contractor].id,
                client_id=clients[client].id if client else None,
                unit_of_measure=unit,
                unit_price=price,
                contractor_cost=cost,
                valid_from=valid_from,
                valid_to=valid_to,
            )
        )

    for idx, (name, type_) in enumerate(DEMO_BUDGET_CATEGORIES):
        _get_or_create(BudgetCategory, defaults={"order_index": idx, "assigned_company_ids": []}, name=name, type=type_)

    if Order.query.count() == 0:
        demo_orders = [
            Order(
                date=date(2023, 10, 1),
                selling_company="Tech Solutions S.A.",
                client_id=clients["Banco Futuro"].id,
                client_name="Banco Futuro",
                po_number="OC-9982",
                service_name="Desarrollo Senior Java",
                service_details="Ticket #JIRA-442 Sprint 12",
                unit_of_measure="Horas",
                quantity=Decimal("120"),
                unit_price=Decimal("85"),
                unit_cost=Decimal("50"),
                contractor_id=contractors["DevSquad External"].id,
                contractor_name="DevSquad External",
                status="En Desarrollo",
                operations_rep="Carlos Ruiz",
                observations="Retraso por acceso a VPN.",
                commitment_date=date(2023, 11, 15),
            ),
            Order(
                date=date(2023, 10, 5),
                selling_company="Innovate Corp",
                client_id=clients["Retail Giants"].id,
                client_name="Retail Giants",
                po_number="OC-2211",
                service_name="Mantenimiento Mensual App",
                unit_of_measure="Proyecto",
                quantity=Decimal("1"),
                unit_price=Decimal("15000"),
                unit_cost=Decimal("8000"),
                contractor_id=contractors["Interno"].id,
                contractor_name="Interno",
                status="QA Cliente",
                operations_rep="Maria Gomez",
                observations="Esperando feedback de UX.",
                commitment_date=date(2023, 12, 1),
                client_cert_date=date(2023, 12, 10),
            ),
        ]
        for order in demo_orders:
            order.recalc_totals()
            record_order_change(order, "Sistema", is_new=True)
            db.session.add(order)

    db.session.commit()
