import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
from orgcms import create_app
from orgcms.extensions import db, limiter
from orgcms.models import MembershipStatus, Org, OrgMembership, Role, User
from orgcms.services.ratelimit import reset_rate_limits

PASSWORD = "Passw0rdOK"


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "MAIL_SUPPRESS_SEND": True,
        "WTF_CSRF_ENABLED": False,
        "BACKGROUND_TASKS_INLINE": True,
        "UPLOAD_FOLDER": str(tmp_path_factory.mktemp("uploads")),
        "ADMIN_EMAIL": None,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def _wipe(app):
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
        reset_rate_limits()
        limiter.reset()


@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    _wipe(app)
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    _wipe(app)


# ---- factories (return ids; instances expire on commit) ----

def make_user(email, password=PASSWORD, name=None, current_org_id=None):
    u = User(email=email.lower(), name=name, current_org_id=current_org_id)
    if password:
        u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u.id


def make_org(name="Acme"):
    o = Org(name=name)
    db.session.add(o)
    db.session.commit()
    return o.id


def add_member(org_id, user_id, role=Role.MEMBER, status=MembershipStatus.ACTIVE):
    m = OrgMembership(org_id=org_id, user_id=user_id, role=role, status=status)
    db.session.add(m)
    db.session.commit()
    return m.id


def login(client, user_id):
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user_id)
        sess["_fresh"] = True


@pytest.fixture()
def org_with_owner(app):
    """(org_id, owner_id) with the owner's current org set."""
    with app.app_context():
        org_id = make_org()
        owner_id = make_user("owner@example.com", current_org_id=org_id)
        add_member(org_id, owner_id, Role.OWNER)
    return org_id, owner_id
