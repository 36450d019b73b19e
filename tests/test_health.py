from sqlalchemy.exc import OperationalError

from orgcms.extensions import db
from orgcms.services import memberships
from conftest import login, make_user


def test_health_ok(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json()["status"] == "healthy"


def test_health_db_down_is_503(client, monkeypatch):
    def down(*a, **kw):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db.session, "execute", down)
    r = client.get("/api/health")
    assert r.status_code == 503
    assert r.get_json()["status"] == "unhealthy"


def test_unexpected_errors_are_opaque_500(app, client, monkeypatch):
    def explode(user_id):
        raise RuntimeError("secret internals")

    with app.app_context():
        uid = make_user("e@example.com")
    monkeypatch.setattr(memberships, "list_orgs_for_user", explode)
    login(client, uid)
    r = client.get("/api/orgs")
    assert r.status_code == 500
    assert r.get_json() == {"error": "internal_error", "code": 500}
