import pytest
from flask_login import login_user

from orgcms.errors import BadRequest, Conflict, Forbidden, Unauthorized
from orgcms.extensions import db
from orgcms.models import MembershipStatus, Role, User
from orgcms.services import policy
from conftest import add_member, make_org, make_user


def _as(app, user_id, path="/x", headers=None):
    ctx = app.test_request_context(path, headers=headers or {})
    ctx.push()
    if user_id is not None:
        login_user(db.session.get(User, user_id))
    return ctx


@pytest.fixture()
def org(app):
    with app.app_context():
        org_id = make_org()
        owner = make_user("o@example.com", current_org_id=org_id)
        admin = make_user("a@example.com")
        member = make_user("m@example.com")
        pending = make_user("p@example.com")
        outsider = make_user("x@example.com")
        add_member(org_id, owner, Role.OWNER)
        add_member(org_id, admin, Role.ADMIN)
        add_member(org_id, member, Role.MEMBER)
        add_member(org_id, pending, Role.ADMIN, MembershipStatus.PENDING)
    return {"org": org_id, "owner": owner, "admin": admin, "member": member,
            "pending": pending, "outsider": outsider}


def test_require_role_unauthenticated_is_401(app, org):
    ctx = _as(app, None)
    try:
        with pytest.raises(Unauthorized):
            policy.require_role(org["org"], [Role.OWNER])
    finally:
        ctx.pop()


@pytest.mark.parametrize("who,roles,ok", [
    ("owner", [Role.OWNER], True),
    ("admin", [Role.OWNER, Role.ADMIN], True),
    ("admin", [Role.OWNER], False),
    ("member", [Role.OWNER, Role.ADMIN], False),
    ("member", ["member"], True),
    ("pending", [Role.ADMIN], False),
    ("outsider", [Role.MEMBER], False),
])
def test_require_role_accepts_only_active_members_in_roles(app, org, who, roles, ok):
    ctx = _as(app, org[who])
    try:
        if ok:
            access = policy.require_role(org["org"], roles)
            assert access.org_id == org["org"]
            assert access.user.id == org[who]
        else:
            with pytest.raises(Forbidden):
                policy.require_role(org["org"], roles)
    finally:
        ctx.pop()


def test_require_self_or_role_always_accepts_self(app, org):
    ctx = _as(app, org["member"])
    try:
        access = policy.require_self_or_role(org["org"], org["member"])
        assert access.role == Role.MEMBER
        with pytest.raises(Forbidden):
            policy.require_self_or_role(org["org"], org["admin"])
    finally:
        ctx.pop()


def test_require_self_or_role_privileged_may_target_others(app, org):
    ctx = _as(app, org["admin"])
    try:
        assert policy.require_self_or_role(org["org"], org["member"]).role == Role.ADMIN
    finally:
        ctx.pop()


def test_ensure_owner_is_not_last(app, org):
    with app.app_context():
        with pytest.raises(Conflict) as exc:
            policy.ensure_owner_is_not_last(org["org"], org["owner"])
        assert exc.value.error == "last_owner_protection"

        # Non-owner targets are a no-op
        policy.ensure_owner_is_not_last(org["org"], org["admin"])
        policy.ensure_owner_is_not_last(org["org"], org["outsider"])

        add_member(org["org"], org["outsider"], Role.OWNER)
        policy.ensure_owner_is_not_last(org["org"], org["owner"])
        assert policy.count_active_owners(org["org"]) == 2


def test_pending_owner_does_not_count(app, org):
    with app.app_context():
        extra = make_user("po@example.com")
        add_member(org["org"], extra, Role.OWNER, MembershipStatus.PENDING)
        assert policy.count_active_owners(org["org"]) == 1
        with pytest.raises(Conflict):
            policy.ensure_owner_is_not_last(org["org"], org["owner"])


def test_role_required_decorator_sets_access(app, org):
    @policy.role_required(Role.OWNER, Role.ADMIN)
    def view():
        from flask import g
        return g.access.role

    ctx = _as(app, org["admin"], headers={"X-Org-Id": str(org["org"])})
    try:
        assert view() == Role.ADMIN
    finally:
        ctx.pop()

    ctx = _as(app, org["member"], headers={"X-Org-Id": str(org["org"])})
    try:
        with pytest.raises(Forbidden):
            view()
    finally:
        ctx.pop()


def test_role_required_without_org_is_400(app, org):
    @policy.role_required(Role.OWNER)
    def view():
        return "ok"

    ctx = _as(app, org["outsider"])
    try:
        with pytest.raises(BadRequest) as exc:
            view()
        assert exc.value.error == "org_required"
    finally:
        ctx.pop()


def test_permissions_for_roles():
    assert "members.changeRole" in policy.permissions_for(Role.OWNER)
    assert "members.changeRole" not in policy.permissions_for(Role.ADMIN)
    assert policy.permissions_for(Role.MEMBER) == ["org.read", "members.list"]
