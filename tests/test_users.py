import pytest

from orgcms.extensions import db
from orgcms.models import AuditLog, MembershipStatus, OrgMembership, Role, User
from conftest import add_member, login, make_org, make_user


@pytest.fixture()
def team(app, org_with_owner):
    org_id, owner_id = org_with_owner
    with app.app_context():
        admin_id = make_user("admin@example.com", current_org_id=org_id)
        member_id = make_user("member@example.com", name="Mem", current_org_id=org_id)
        add_member(org_id, admin_id, Role.ADMIN)
        add_member(org_id, member_id, Role.MEMBER)
    return {"org": org_id, "owner": owner_id, "admin": admin_id, "member": member_id}


def test_list_users_in_current_org(client, team):
    login(client, team["member"])
    r = client.get("/api/users")
    assert r.status_code == 200
    assert len(r.get_json()) == 3
    assert r.headers["X-RateLimit-Limit"] == "10"


def test_list_users_rate_limited(client, team):
    login(client, team["member"])
    for _ in range(10):
        assert client.get("/api/users").status_code == 200
    r = client.get("/api/users")
    assert r.status_code == 429


def test_create_user_by_admin(app, client, team):
    login(client, team["admin"])
    r = client.post("/api/users", json={"email": "fresh@example.com", "name": "Fresh", "password": "Fresh1234"})
    assert r.status_code == 201
    new_id = r.get_json()["id"]
    with app.app_context():
        m = db.session.query(OrgMembership).filter_by(user_id=new_id).one()
        assert m.status == MembershipStatus.ACTIVE and m.role == Role.MEMBER
        assert db.session.query(AuditLog).filter_by(action="USER_CREATE").count() == 1


def test_create_user_duplicate_email_is_409(client, team):
    login(client, team["owner"])
    r = client.post("/api/users", json={"email": "Member@example.com"})
    assert r.status_code == 409


def test_create_user_by_member_is_403(client, team):
    login(client, team["member"])
    assert client.post("/api/users", json={"email": "x@example.com"}).status_code == 403


def test_get_user(client, team):
    login(client, team["member"])
    r = client.get(f"/api/users/{team['admin']}")
    assert r.status_code == 200 and r.get_json()["email"] == "admin@example.com"
    assert client.get("/api/users/98765").status_code == 404


def test_self_update_and_audit(app, client, team):
    login(client, team["member"])
    r = client.patch(f"/api/users/{team['member']}", json={"name": "Renamed"})
    assert r.status_code == 200 and r.get_json()["name"] == "Renamed"
    with app.app_context():
        row = db.session.query(AuditLog).filter_by(action="USER_UPDATE").one()
        assert row.actor_id == team["member"]
        assert row.before == {"email": "member@example.com", "name": "Mem"}
        assert row.after == {"email": "member@example.com", "name": "Renamed"}


def test_member_cannot_update_others(client, team):
    login(client, team["member"])
    assert client.patch(f"/api/users/{team['admin']}", json={"name": "x"}).status_code == 403


def test_admin_updates_member_but_not_password(client, team):
    login(client, team["admin"])
    assert client.patch(f"/api/users/{team['member']}", json={"name": "By Admin"}).status_code == 200
    assert client.patch(f"/api/users/{team['member']}", json={"password": "Another123"}).status_code == 403


def test_update_to_taken_email_is_409(client, team):
    login(client, team["member"])
    r = client.patch(f"/api/users/{team['member']}", json={"email": "admin@example.com"})
    assert r.status_code == 409


def test_admin_cannot_touch_user_outside_org(app, client, team):
    with app.app_context():
        other = make_org("Other")
        stranger = make_user("stranger@example.com")
        add_member(other, stranger, Role.MEMBER)
    login(client, team["admin"])
    assert client.patch(f"/api/users/{stranger}", json={"name": "x"}).status_code == 404


def test_delete_member_by_admin(app, client, team):
    login(client, team["admin"])
    assert client.delete(f"/api/users/{team['member']}").status_code == 200
    with app.app_context():
        assert db.session.get(User, team["member"]) is None
        assert db.session.query(OrgMembership).filter_by(user_id=team["member"]).count() == 0
        row = db.session.query(AuditLog).filter_by(action="USER_DELETE").one()
        assert row.org_id == team["org"] and row.actor_id == team["admin"]


def test_delete_sole_owner_is_409(app, client, team):
    login(client, team["owner"])
    r = client.delete(f"/api/users/{team['owner']}")
    assert r.status_code == 409
    with app.app_context():
        assert db.session.get(User, team["owner"]) is not None


def test_self_delete_logs_out(client, team):
    login(client, team["member"])
    assert client.delete(f"/api/users/{team['member']}").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_delete_is_strictly_rate_limited(client, team):
    login(client, team["admin"])
    assert client.delete(f"/api/users/{team['member']}").status_code == 200
    r = client.delete(f"/api/users/{team['owner']}")
    assert r.status_code == 429
