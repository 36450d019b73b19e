import pytest

from orgcms.extensions import db
from orgcms.models import AuditLog, MembershipStatus, OrgMembership, Role, User
from conftest import add_member, login, make_user


@pytest.fixture()
def team(app, org_with_owner):
    org_id, owner_id = org_with_owner
    with app.app_context():
        admin_id = make_user("admin@example.com", current_org_id=org_id)
        member_id = make_user("member@example.com", current_org_id=org_id)
        add_member(org_id, admin_id, Role.ADMIN)
        add_member(org_id, member_id, Role.MEMBER)
    return {"org": org_id, "owner": owner_id, "admin": admin_id, "member": member_id}


def _audit_rows(org_id, action=None):
    q = db.session.query(AuditLog).filter_by(org_id=org_id)
    if action:
        q = q.filter_by(action=action)
    return q.order_by(AuditLog.id).all()


# ---- orgs ----

def test_list_orgs_requires_auth(client):
    assert client.get("/api/orgs").status_code == 401


def test_create_org_makes_caller_owner(app, client, team):
    login(client, team["member"])
    r = client.post("/api/orgs", json={"name": "Side Project"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["role"] == "OWNER"

    listed = client.get("/api/orgs").get_json()
    assert {o["name"] for o in listed} == {"Acme", "Side Project"}

    with app.app_context():
        assert db.session.get(User, team["member"]).current_org_id == body["id"]
        rows = _audit_rows(body["id"], "ORG_CREATE")
        assert len(rows) == 1 and rows[0].actor_id == team["member"]


@pytest.mark.parametrize("name", ["", "   ", "bad/name!", "x" * 101])
def test_create_org_invalid_name(client, team, name):
    login(client, team["owner"])
    r = client.post("/api/orgs", json={"name": name})
    assert r.status_code == 400


# ---- members list ----

def test_members_list_for_active_member(client, team):
    login(client, team["member"])
    r = client.get("/api/orgs/members")
    assert r.status_code == 200
    assert {m["email"] for m in r.get_json()} == {"owner@example.com", "admin@example.com", "member@example.com"}


def test_members_list_non_member_is_403(app, client, team):
    with app.app_context():
        outsider = make_user("out@example.com")
    login(client, outsider)
    r = client.get("/api/orgs/members", headers={"X-Org-Id": str(team["org"])})
    assert r.status_code == 403


# ---- invite ----

def test_invite_new_email_creates_shell_and_pending_membership(app, client, team):
    login(client, team["admin"])
    r = client.post("/api/orgs/members/invite", json={"email": "New@Example.com", "role": "ADMIN"})
    assert r.status_code == 201
    with app.app_context():
        user = db.session.query(User).filter_by(email="new@example.com").one()
        assert user.password_hash is None
        m = db.session.query(OrgMembership).filter_by(user_id=user.id).one()
        assert m.status == MembershipStatus.PENDING and m.role == Role.ADMIN
        rows = _audit_rows(team["org"], "MEMBER_INVITE")
        assert len(rows) == 1 and rows[0].actor_id == team["admin"]


def test_double_invite_is_409_without_duplicate_rows(app, client, team):
    login(client, team["owner"])
    assert client.post("/api/orgs/members/invite", json={"email": "dup@example.com"}).status_code == 201
    r = client.post("/api/orgs/members/invite", json={"email": "dup@example.com"})
    assert r.status_code == 409
    assert r.get_json()["error"] == "already_invited"
    with app.app_context():
        assert db.session.query(User).filter_by(email="dup@example.com").count() == 1
        assert db.session.query(OrgMembership).filter(
            OrgMembership.org_id == team["org"]).count() == 4


def test_invite_existing_active_member_is_409(client, team):
    login(client, team["owner"])
    r = client.post("/api/orgs/members/invite", json={"email": "member@example.com"})
    assert r.status_code == 409
    assert r.get_json()["error"] == "already_member"


def test_invite_by_member_is_403(client, team):
    login(client, team["member"])
    assert client.post("/api/orgs/members/invite", json={"email": "z@example.com"}).status_code == 403


@pytest.mark.parametrize("role", ["OWNER", "superuser"])
def test_invite_rejects_owner_and_unknown_roles(client, team, role):
    login(client, team["owner"])
    r = client.post("/api/orgs/members/invite", json={"email": "z@example.com", "role": role})
    assert r.status_code == 400


# ---- role change ----

def _patch_role(client, user_id, role):
    return client.patch(f"/api/orgs/members/{user_id}/role", json={"role": role})


def test_role_change_scenario(app, client, team):
    login(client, team["owner"])
    r = _patch_role(client, team["owner"], "MEMBER")
    assert r.status_code == 409
    assert r.get_json()["error"] == "last_owner_protection"

    assert _patch_role(client, team["admin"], "OWNER").status_code == 200

    # Now two owners; the second one demotes the first
    login(client, team["admin"])
    assert _patch_role(client, team["owner"], "MEMBER").status_code == 200

    with app.app_context():
        rows = _audit_rows(team["org"], "MEMBER_ROLE_UPDATE")
        assert [(r.actor_id, r.before, r.after) for r in rows] == [
            (team["owner"], {"role": "ADMIN"}, {"role": "OWNER"}),
            (team["admin"], {"role": "OWNER"}, {"role": "MEMBER"}),
        ]
        owners = db.session.query(OrgMembership).filter_by(
            org_id=team["org"], role=Role.OWNER, status=MembershipStatus.ACTIVE).count()
        assert owners == 1


def test_role_change_requires_owner(client, team):
    login(client, team["admin"])
    assert _patch_role(client, team["member"], "ADMIN").status_code == 403


def test_role_change_errors(app, client, team):
    login(client, team["owner"])
    r = _patch_role(client, team["member"], "GOD")
    assert (r.status_code, r.get_json()["error"]) == (400, "invalid_role")

    r = _patch_role(client, 99999, "ADMIN")
    assert r.status_code == 404

    r = _patch_role(client, team["member"], "MEMBER")
    assert (r.status_code, r.get_json()["error"]) == (409, "role_unchanged")

    with app.app_context():
        assert _audit_rows(team["org"], "MEMBER_ROLE_UPDATE") == []


def test_role_change_self_target_with_other_owner_is_400(app, client, team):
    with app.app_context():
        db.session.query(OrgMembership).filter_by(user_id=team["admin"]).update({"role": Role.OWNER})
        db.session.commit()
    login(client, team["owner"])
    r = _patch_role(client, team["owner"], "ADMIN")
    assert (r.status_code, r.get_json()["error"]) == (400, "self_role_change")


# ---- removal ----

def test_remove_member(app, client, team):
    login(client, team["admin"])
    r = client.delete(f"/api/orgs/members/{team['member']}")
    assert r.status_code == 200
    with app.app_context():
        assert db.session.query(OrgMembership).filter_by(user_id=team["member"]).count() == 0
        assert db.session.get(User, team["member"]).current_org_id is None
        rows = _audit_rows(team["org"], "MEMBER_REMOVE")
        assert len(rows) == 1
        assert rows[0].before["role"] == "MEMBER"


def test_remove_last_owner_is_409(app, client, team):
    login(client, team["admin"])
    r = client.delete(f"/api/orgs/members/{team['owner']}")
    assert r.status_code == 409
    with app.app_context():
        assert db.session.query(OrgMembership).filter_by(user_id=team["owner"]).count() == 1


def test_remove_unknown_member_is_404(client, team):
    login(client, team["owner"])
    assert client.delete("/api/orgs/members/424242").status_code == 404


def test_member_cannot_remove(client, team):
    login(client, team["member"])
    assert client.delete(f"/api/orgs/members/{team['admin']}").status_code == 403
