"""
Tests for the login gate and role enforcement.
"""
import pytest

from nexusorder.extensions import db, login_manager
from nexusorder.models import User


def _user_id(app, name):
    with app.app_context():
        return User.query.filter_by(name=name).one().id


@pytest.mark.unit
def test_user_loader_exists(app):
    assert login_manager._user_callback is not None


@pytest.mark.integration
def test_index_reports_anonymous(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json() == {"app": "NexusOrder", "authenticated": False}


@pytest.mark.integration
def test_login_picker_lists_active_users_without_secrets(client):
    response = client.get("/auth/users")
    assert response.status_code == 200
    names = [u["name"] for u in response.get_json()]
    assert names == ["Carlos Ruiz", "Jane Doe", "Visitante"]
    assert all("access_code_hash" not in u for u in response.get_json())


@pytest.mark.integration
def test_login_with_default_code(app, client):
    user_id = _user_id(app, "Carlos Ruiz")

    response = client.post("/auth/login", json={"user_id": user_id, "access_code": "1234"})
    assert response.status_code == 200
    assert response.get_json()["role"] == "Operaciones"

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.get_json()["name"] == "Carlos Ruiz"


@pytest.mark.integration
def test_login_with_wrong_code_fails(app, client):
    user_id = _user_id(app, "Jane Doe")
    response = client.post("/auth/login", json={"user_id": user_id, "access_code": "0000"})
    assert response.status_code == 401
    assert "error" in response.get_json()


@pytest.mark.integration
def test_personal_code_replaces_default(app, client):
    with app.app_context():
        user = User.query.filter_by(name="Jane Doe").one()
        user.set_access_code("9876")
        db.session.commit()
        user_id = user.id

    assert client.post("/auth/login", json={"user_id": user_id, "access_code": "1234"}).status_code == 401
    assert client.post("/auth/login", json={"user_id": user_id, "access_code": "9876"}).status_code == 200


@pytest.mark.integration
def test_inactive_user_cannot_log_in(app, client):
    with app.app_context():
        user = User.query.filter_by(name="Visitante").one()
        user.is_active = False
        db.session.commit()
        user_id = user.id

    response = client.post("/auth/login", json={"user_id": user_id, "access_code": "1234"})
    assert response.status_code == 403


@pytest.mark.integration
def test_logout(admin_client):
    assert admin_client.post("/auth/logout").status_code == 200
    assert admin_client.get("/auth/me").status_code == 401


@pytest.mark.integration
def test_protected_routes_require_login(client):
    assert client.get("/orders/").status_code == 401
    assert client.get("/dashboard/").status_code == 401
    assert client.post("/orders/", json={}).status_code == 401


@pytest.mark.integration
def test_viewer_is_read_only(viewer_client):
    assert viewer_client.get("/orders/").status_code == 200
    response = viewer_client.post("/orders/", json={"selling_company": "Acme", "service_name": "X"})
    assert response.status_code == 403
    assert viewer_client.post("/settings/companies", json={"name": "Nueva"}).status_code == 403


@pytest.mark.integration
def test_viewer_can_still_log_out(viewer_client):
    assert viewer_client.post("/auth/logout").status_code == 200


@pytest.mark.integration
def test_operations_cannot_manage_master_data(ops_client):
    assert ops_client.post("/settings/companies", json={"name": "Nueva"}).status_code == 403
    assert ops_client.get("/users/").status_code == 403


@pytest.mark.integration
def test_csrf_token_endpoint(client):
    response = client.get("/auth/csrf-token")
    assert response.status_code == 200
    assert response.get_json()["csrf_token"]
