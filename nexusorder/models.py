"""
NexusOrder – Domain Models

Master data:
- Company, Client, Contractor, UnitOfMeasure, ServiceCatalogItem
- WorkflowStatus (ordered pipeline; orders reference a status by NAME)
- PriceListEntry (priced offer scoped by company, optionally by client/contractor, valid over a date range)
- User (login gate: pick identity + PIN, role gates writes)

Operations:
- Order (+ OrderHistoryEntry, Attachment, ProgressLogEntry owned by the order)

Planning:
- BudgetCategory, BudgetEntry, ExchangeRate (monthly P&L grid per company)

Audit:
- AuditLog (WHO did WHAT to WHICH entity, before/after snapshots)

IMPORTANT:
- total_value is derived (quantity × unit_price) and recomputed on every save via Order.recalc_totals().
- unit_price / unit_cost are snapshots taken when the order is saved; later price list edits never touch them.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db


ROLE_ADMIN = "Admin"
ROLE_OPERATIONS = "Operaciones"
ROLE_VIEWER = "Lector"
ROLES = (ROLE_ADMIN, ROLE_OPERATIONS, ROLE_VIEWER)

UNASSIGNED_CONTRACTOR = "Sin Asignar"
UNKNOWN_CLIENT = "Cliente Desconocido"

BUDGET_TYPE_INCOME = "Ingreso"
BUDGET_TYPE_DIRECT = "Costo Directo"
BUDGET_TYPE_INDIRECT = "Costo Indirecto"
BUDGET_TYPES = (BUDGET_TYPE_INCOME, BUDGET_TYPE_DIRECT, BUDGET_TYPE_INDIRECT)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _iso(value) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _num(value) -> float | None:
    """Decimal/None -> float for JSON payloads."""
    if value is None:
        return None
    return float(value)


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
class Company(db.Model):
    """Selling company. Orders and price entries reference it by name."""

    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    def __repr__(self):
        return f"<Company {self.name}>"


class Client(db.Model):
    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    tax_id = db.Column(db.String(50), nullable=True)
    contact_name = db.Column(db.String(150), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tax_id": self.tax_id,
            "contact_name": self.contact_name,
        }

    def __repr__(self):
        return f"<Client {self.name}>"


class Contractor(db.Model):
    __tablename__ = "contractors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    specialty = db.Column(db.String(150), nullable=True)

    # Selling company this contractor usually works for (free text, optional)
    company = db.Column(db.String(150), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "specialty": self.specialty,
            "company": self.company,
        }

    def __repr__(self):
        return f"<Contractor {self.name}>"


class UnitOfMeasure(db.Model):
    __tablename__ = "units_of_measure"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class ServiceCatalogItem(db.Model):
    __tablename__ = "service_catalog"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    category = db.Column(db.String(100), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "category": self.category}


class WorkflowStatus(db.Model):
    """
    Ordered pipeline stage.

    Orders store the status NAME (free string). Saves validate it against this table
    (see utils.resolve_status).
    """

    __tablename__ = "workflow_statuses"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False, unique=True, index=True)
    color = db.Column(db.String(120), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0, index=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color, "sort_order": self.sort_order}


class User(UserMixin, db.Model):
    """
    Login identity.

    The access code is a convenience PIN, not a credential system. It is stored hashed;
    users without a code log in with the configured DEFAULT_ACCESS_CODE.
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(150), nullable=False, unique=True, index=True)
    role = db.Column(db.String(30), nullable=False, default=ROLE_VIEWER, index=True)
    initials = db.Column(db.String(5), nullable=True)

    access_code_hash = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_access_code(self, code: str | None):
        self.access_code_hash = generate_password_hash(code) if code else None

    def check_access_code(self, code: str, default_code: str) -> bool:
        if not self.access_code_hash:
            return code == default_code
        return check_password_hash(self.access_code_hash, code)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_viewer(self) -> bool:
        return self.role == ROLE_VIEWER

    def can_edit(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_OPERATIONS)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "initials": self.initials,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.name} ({self.role})>"


# ---------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------
class PriceListEntry(db.Model):
    """
    Priced offer for a service.

    Scope:
    - selling_company: mandatory exact match
    - client_id / contractor_id: None means generic
    - valid_from..valid_to: inclusive validity window
    """

    __tablename__ = "price_list"

    id = db.Column(db.Integer, primary_key=True)

    service_name = db.Column(db.String(200), nullable=False, index=True)
    selling_company = db.Column(db.String(150), nullable=False, index=True)

    contractor_id = db.Column(
        db.Integer,
        db.ForeignKey("contractors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    unit_of_measure = db.Column(db.String(80), nullable=True)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    contractor_cost = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    valid_from = db.Column(db.Date, nullable=False)
    valid_to = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contractor = db.relationship("Contractor", foreign_keys=[contractor_id])
    client = db.relationship("Client", foreign_keys=[client_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_name": self.service_name,
            "selling_company": self.selling_company,
            "contractor_id": self.contractor_id,
            "contractor_name": self.contractor.name if self.contractor else None,
            "client_id": self.client_id,
            "unit_of_measure": self.unit_of_measure,
            "unit_price": _num(self.unit_price),
            "contractor_cost": _num(self.contractor_cost),
            "valid_from": _iso(self.valid_from),
            "valid_to": _iso(self.valid_to),
        }

    def __repr__(self):
        return f"<PriceListEntry {self.selling_company} / {self.service_name}>"


# ---------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------
class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, nullable=False, default=date.today, index=True)
    selling_company = db.Column(db.String(150), nullable=False, index=True)

    budget_category_id = db.Column(
        db.Integer,
        db.ForeignKey("budget_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    client_name = db.Column(db.String(200), nullable=True)

    contractor_id = db.Column(
        db.Integer,
        db.ForeignKey("contractors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    contractor_name = db.Column(db.String(200), nullable=True)

    po_number = db.Column(db.String(100), nullable=True, index=True)

    service_name = db.Column(db.String(200), nullable=False, index=True)
    service_details = db.Column(db.Text, nullable=True)

    unit_of_measure = db.Column(db.String(80), nullable=True)
    quantity = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("1.00"))
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    unit_cost = db.Column(db.Numeric(14, 2), nullable=True, default=Decimal("0.00"))
    total_value = db.Column(db.Numeric(16, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.String(80), nullable=True, index=True)
    operations_rep = db.Column(db.String(150), nullable=True)
    observations = db.Column(db.Text, nullable=True)

    # Milestones
    commitment_date = db.Column(db.Date, nullable=True)
    client_cert_date = db.Column(db.Date, nullable=True)
    billing_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    history = db.relationship(
        "OrderHistoryEntry",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderHistoryEntry.id",
    )
    attachments = db.relationship(
        "Attachment",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Attachment.id",
    )
    progress_logs = db.relationship(
        "ProgressLogEntry",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ProgressLogEntry.id",
    )

    budget_category = db.relationship("BudgetCategory", foreign_keys=[budget_category_id])

    def recalc_totals(self):
        """Recompute the stored total from its inputs (single rule lives in economics)."""
        from .economics import compute_order_economics

        self.total_value = compute_order_economics(self).total_value

    def append_history(self, user: str, action: str, details: str = "") -> "OrderHistoryEntry":
        """Append-only audit line owned by the order."""
        entry = OrderHistoryEntry(
            date=datetime.utcnow(),
            user=user or "Sistema",
            action=action,
            details=details or "",
        )
        self.history.append(entry)
        return entry

    def to_dict(self, include_children: bool = True) -> dict:
        from .economics import compute_order_economics

        data = {
            "id": self.id,
            "date": _iso(self.date),
            "selling_company": self.selling_company,
            "budget_category_id": self.budget_category_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "contractor_id": self.contractor_id,
            "contractor_name": self.contractor_name,
            "po_number": self.po_number,
            "service_name": self.service_name,
            "service_details": self.service_details,
            "unit_of_measure": self.unit_of_measure,
            "quantity": _num(self.quantity),
            "unit_price": _num(self.unit_price),
            "unit_cost": _num(self.unit_cost),
            "status": self.status,
            "operations_rep": self.operations_rep,
            "observations": self.observations,
            "commitment_date": _iso(self.commitment_date),
            "client_cert_date": _iso(self.client_cert_date),
            "billing_date": _iso(self.billing_date),
            "economics": compute_order_economics(self).as_dict(),
        }
        if include_children:
            data["history"] = [h.to_dict() for h in self.history]
            data["attachments"] = [a.to_dict() for a in self.attachments]
            data["progress_logs"] = [p.to_dict() for p in self.progress_logs]
        return data

    def __repr__(self):
        return f"<Order {self.id} {self.service_name}>"


class OrderHistoryEntry(db.Model):
    __tablename__ = "order_history"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    user = db.Column(db.String(150), nullable=False)
    action = db.Column(db.String(80), nullable=False)
    details = db.Column(db.Text, nullable=True)

    order = db.relationship("Order", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": _iso(self.date),
            "user": self.user,
            "action": self.action,
            "details": self.details,
        }


class Attachment(db.Model):
    """Named external link (documents live outside the system)."""

    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(1000), nullable=False)
    date = db.Column(db.Date, default=date.today, nullable=False)

    order = db.relationship("Order", back_populates="attachments")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "url": self.url, "date": _iso(self.date)}


class ProgressLogEntry(db.Model):
    """
    Partial completion report against the order quantity.

    Quantities are NOT clamped here; over-reporting stays visible in raw totals.
    """

    __tablename__ = "progress_logs"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    date = db.Column(db.Date, default=date.today, nullable=False)
    quantity = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    certification_date = db.Column(db.Date, nullable=True)
    billing_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    user = db.Column(db.String(150), nullable=True)

    order = db.relationship("Order", back_populates="progress_logs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": _iso(self.date),
            "quantity": _num(self.quantity),
            "certification_date": _iso(self.certification_date),
            "billing_date": _iso(self.billing_date),
            "notes": self.notes,
            "user": self.user,
        }


# ---------------------------------------------------------------------
# Budget (monthly P&L planning grid)
# ---------------------------------------------------------------------
class BudgetCategory(db.Model):
    __tablename__ = "budget_categories"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(150), nullable=False)
    type = db.Column(db.String(30), nullable=False, default=BUDGET_TYPE_INCOME, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    # Empty list = applies to every company
    assigned_company_ids = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "order_index": self.order_index,
            "assigned_company_ids": list(self.assigned_company_ids or []),
        }


class BudgetEntry(db.Model):
    __tablename__ = "budget_entries"

    id = db.Column(db.Integer, primary_key=True)

    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("budget_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Always the first day of the month
    month_date = db.Column(db.Date, nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    unit_value = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    amount = db.Column(db.Numeric(16, 2), nullable=False, default=Decimal("0.00"))

    __table_args__ = (
        db.UniqueConstraint("company_id", "category_id", "month_date", name="uq_budget_cell"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "category_id": self.category_id,
            "month_date": _iso(self.month_date),
            "quantity": _num(self.quantity),
            "unit_value": _num(self.unit_value),
            "amount": _num(self.amount),
        }


class ExchangeRate(db.Model):
    __tablename__ = "exchange_rates"

    id = db.Column(db.Integer, primary_key=True)

    year = db.Column(db.Integer, nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)  # 1..12
    rate = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))

    __table_args__ = (db.UniqueConstraint("year", "month", name="uq_exchange_rate_month"),)

    def to_dict(self) -> dict:
        return {"id": self.id, "year": self.year, "month": self.month, "rate": _num(self.rate)}


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Audit trail for master data and order mutations."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
