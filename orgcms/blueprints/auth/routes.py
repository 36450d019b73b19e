import json

from flask import current_app, jsonify, request
from flask_login import current_user, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from orgcms.errors import BadRequest, Unauthorized, validation_error
from orgcms.extensions import db, limiter
from orgcms.models import Org
from orgcms.services import memberships
from orgcms.services.org_context import resolve_current_org_id
from orgcms.services.policy import get_membership, require_auth
from orgcms.services.ratelimit import auth_rate_limit, client_ip
from orgcms.utils.http import json_body
from orgcms.utils.validators import validate_signup
from . import bp


def _login_email_scope():
    data_json = request.get_json(silent=True) or {}
    email = (data_json.get("email") or "").strip().lower() if isinstance(data_json, dict) else ""
    # Keep a stable scope even if email is blank
    return f"login-email:{email or 'missing'}"


@bp.post("/signup")
def signup():
    result = auth_rate_limit.check(f"signup:{client_ip()}")

    cleaned, errors = validate_signup(json_body())
    if errors:
        raise validation_error(errors)

    user, org = memberships.signup(
        email=cleaned["email"],
        password=cleaned["password"],
        name=cleaned["name"],
        org_name=cleaned["org_name"],
    )
    return jsonify({"ok": True, "userId": user.id, "orgId": org.id}), 201, result.headers()


@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")              # per-IP (anon → IP via _rate_limit_key)
@limiter.limit("5 per minute; 20 per hour", key_func=_login_email_scope)  # per-account
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        raise BadRequest("credentials_required")

    user = memberships.find_user_by_email(email)
    if not user or not user.is_active or not user.check_password(password):
        current_app.logger.info(json.dumps({"event": "login_failed", "email": email, "ip": client_ip()}))
        raise Unauthorized("invalid_credentials")

    login_user(user)
    current_app.logger.info(json.dumps({"event": "login", "user_id": user.id}))
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@bp.post("/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({"ok": True}), 200


@bp.get("/me")
def me():
    user = require_auth()
    org_id = resolve_current_org_id()
    org = db.session.get(Org, org_id) if org_id else None
    m = get_membership(user.id, org_id) if org_id else None
    return jsonify({
        "user": user.to_dict(),
        "org": org.to_dict() if org else None,
        "role": m.role.value if m is not None and m.is_active_member else None,
    }), 200


@bp.get("/csrf-token")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()}), 200
