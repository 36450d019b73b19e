import click
from flask.cli import with_appcontext

from orgcms.errors import Conflict
from orgcms.extensions import db
from orgcms.models import Content, MembershipStatus, Org, OrgMembership, Role, User
from orgcms.services import memberships
from orgcms.services.policy import ensure_owner_is_not_last, lock_org
from orgcms.utils.validators import normalize_email


def _get_or_create_org(name: str) -> Org:
    org = db.session.query(Org).filter(Org.name == name).one_or_none()
    if org:
        return org
    org = Org(name=name)
    db.session.add(org)
    db.session.flush()
    return org


def _user_or_fail(email: str) -> User:
    user = memberships.find_user_by_email(email)
    if not user:
        raise click.ClickException("User not found")
    return user


@click.group()
def bootstrap():
    """Bootstrap helpers."""


@bootstrap.command("owner")
@click.option("--org-name", required=True)
@click.option("--email", required=True)
@click.option("--password", required=True)
@with_appcontext
def bootstrap_owner(org_name, email, password):
    email = normalize_email(email)
    # fail fast if user exists
    if memberships.find_user_by_email(email):
        raise click.ClickException("User already exists")

    org = _get_or_create_org(org_name)

    user = User(email=email, is_active=True, current_org_id=org.id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()

    db.session.add(OrgMembership(org_id=org.id, user_id=user.id, role=Role.OWNER, status=MembershipStatus.ACTIVE))
    db.session.commit()

    click.echo(f"Bootstrap complete: org_id={org.id} owner_user_id={user.id} email={email}")


@click.group()
def users():
    """User management."""


@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--org-id", type=int, required=True, help="Existing org id")
@click.option("--role", type=click.Choice([r.value for r in Role]), default=Role.MEMBER.value)
@with_appcontext
def users_create(email, password, org_id, role):
    email = normalize_email(email)
    if memberships.find_user_by_email(email):
        raise click.ClickException("User already exists")

    org = db.session.get(Org, org_id)
    if not org:
        raise click.ClickException(f"Org id {org_id} not found")

    user = User(email=email, is_active=True, current_org_id=org.id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()

    db.session.add(OrgMembership(org_id=org.id, user_id=user.id, role=Role(role), status=MembershipStatus.ACTIVE))
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email} org_id={org.id} role={role}")


@click.group()
def members():
    """Org membership role ops."""


@members.command("promote")
@click.option("--org-id", type=int, required=True)
@click.option("--email", required=True)
@click.option("--role", type=click.Choice([Role.ADMIN.value, Role.OWNER.value]), required=True)
@with_appcontext
def members_promote(org_id, email, role):
    user = _user_or_fail(email)
    if not db.session.get(Org, org_id):
        raise click.ClickException(f"Org id {org_id} not found")
    m = db.session.query(OrgMembership).filter_by(org_id=org_id, user_id=user.id).one_or_none()
    if not m:
        m = OrgMembership(org_id=org_id, user_id=user.id, role=Role(role), status=MembershipStatus.ACTIVE)
        db.session.add(m)
    else:
        m.role = Role(role)
    db.session.commit()
    click.echo(f"Promoted {user.email} in org {org_id} to {role}")


@members.command("demote")
@click.option("--org-id", type=int, required=True)
@click.option("--email", required=True)
@with_appcontext
def members_demote(org_id, email):
    user = _user_or_fail(email)

    lock_org(org_id)
    m = db.session.query(OrgMembership).filter_by(org_id=org_id, user_id=user.id).one_or_none()
    if not m:
        db.session.rollback()
        raise click.ClickException("Membership not found")

    # Safety rail: cannot demote last owner
    try:
        ensure_owner_is_not_last(org_id, user.id)
    except Conflict:
        db.session.rollback()
        raise click.ClickException("Refused: cannot demote the last owner of this org")

    m.role = Role.MEMBER
    db.session.commit()
    click.echo(f"Demoted {user.email} in org {org_id} to {Role.MEMBER.value}")


_SEED_CONTENT = (
    ("home.hero.title", "Welcome", "Welcome to our site."),
    ("home.hero.subtitle", "What we do", "Tell visitors what you offer."),
    ("footer.copyright", None, "All rights reserved."),
)


@click.command("seed")
@click.option("--email", default="example@example.com", show_default=True)
@click.option("--password", default="Example123", show_default=True)
@click.option("--locale", default=None, help="Content locale (defaults to CONTENT_DEFAULT_LOCALE)")
@with_appcontext
def seed(email, password, locale):
    """Idempotent demo data: one owner, one org, a few content rows."""
    from flask import current_app

    locale = locale or current_app.config.get("CONTENT_DEFAULT_LOCALE", "tr")
    user = memberships.find_user_by_email(email)
    if user is None:
        user, org = memberships.signup(normalize_email(email), password, name="Example", org_name="Example Org")
        click.echo(f"Seeded user id={user.id} org_id={org.id}")
    else:
        click.echo(f"User {user.email} already exists; skipped")

    added = 0
    for key, title, body in _SEED_CONTENT:
        exists = db.session.query(Content).filter_by(key=key, locale=locale).one_or_none()
        if exists:
            continue
        db.session.add(Content(key=key, locale=locale, title=title, content=body, is_active=True))
        added += 1
    db.session.commit()
    click.echo(f"Seeded {added} content rows for locale {locale}")


def register_cli(app):
    app.cli.add_command(bootstrap)
    app.cli.add_command(users)
    app.cli.add_command(members)
    app.cli.add_command(seed)
