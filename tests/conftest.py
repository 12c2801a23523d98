"""
Pytest configuration and fixtures for NexusOrder testing.
"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from nexusorder import create_app
from nexusorder.extensions import db
from nexusorder.models import Client, Company, Contractor, PriceListEntry, User
from nexusorder.seed import seed_defaults


@pytest.fixture(scope='function')
def app():
    """Fresh app + in-memory database with the default workflow, units and users."""
    flask_app = create_app("config.TestingConfig")

    with flask_app.app_context():
        db.create_all()
        seed_defaults()

    yield flask_app

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for making requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create a CLI runner for testing CLI commands."""
    return app.test_cli_runner()


def _login_as(app, name):
    test_client = app.test_client()
    with app.app_context():
        user_id = User.query.filter_by(name=name).one().id
    with test_client.session_transaction() as sess:
        sess['_user_id'] = str(user_id)
        sess['_fresh'] = True
    return test_client


@pytest.fixture(scope='function')
def admin_client(app):
    """Logged in as the seeded Admin (Jane Doe)."""
    return _login_as(app, "Jane Doe")


@pytest.fixture(scope='function')
def ops_client(app):
    """Logged in as the seeded Operaciones user (Carlos Ruiz)."""
    return _login_as(app, "Carlos Ruiz")


@pytest.fixture(scope='function')
def viewer_client(app):
    """Logged in as the seeded Lector user (Visitante)."""
    return _login_as(app, "Visitante")


@pytest.fixture(scope='function')
def master_data(app):
    """One company, two clients, one contractor and a small price list. Returns ids."""
    with app.app_context():
        company = Company(name="Acme")
        c1 = Client(name="Banco Futuro")
        c2 = Client(name="Retail Giants")
        ct1 = Contractor(name="DevSquad External", specialty="Desarrollo Web")
        db.session.add_all([company, c1, c2, ct1])
        db.session.flush()

        db.session.add_all(
            [
                PriceListEntry(
                    service_name="Desarrollo Senior Java",
                    selling_company="Acme",
                    contractor_id=ct1.id,
                    client_id=None,
                    unit_of_measure="Horas",
                    unit_price=Decimal("85"),
                    contractor_cost=Decimal("50"),
                    valid_from=date(2023, 1, 1),
                    valid_to=date(2025, 12, 31),
                ),
                PriceListEntry(
                    service_name="Desarrollo Senior Java",
                    selling_company="Acme",
                    client_id=c1.id,
                    unit_of_measure="Horas",
                    unit_price=Decimal("95"),
                    contractor_cost=Decimal("60"),
                    valid_from=date(2023, 1, 1),
                    valid_to=date(2025, 12, 31),
                ),
            ]
        )
        db.session.commit()

        return SimpleNamespace(company_id=company.id, client_id=c1.id, client2_id=c2.id, contractor_id=ct1.id)


def make_order(**overrides):
    """Plain order-shaped object for engine tests (no session needed)."""
    data = dict(
        id=1,
        date=date(2024, 6, 1),
        selling_company="Acme",
        client_name="Banco Futuro",
        contractor_id=None,
        contractor_name=None,
        service_name="Desarrollo Senior Java",
        service_details="",
        po_number=None,
        unit_of_measure="Horas",
        quantity=Decimal("10"),
        unit_price=Decimal("85"),
        unit_cost=Decimal("50"),
        status="En Desarrollo",
        operations_rep=None,
        commitment_date=None,
        client_cert_date=None,
        billing_date=None,
        observations=None,
        progress_logs=[],
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def make_log(quantity, **overrides):
    data = dict(
        quantity=Decimal(str(quantity)),
        date=date(2024, 6, 2),
        certification_date=None,
        billing_date=None,
        notes=None,
        user="Carlos Ruiz",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


# Markers for categorizing tests
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (slower)"
    )
