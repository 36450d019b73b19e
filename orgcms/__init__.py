import json
import os

from flask import Flask, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .errors import ApiError
from .extensions import db, migrate, csrf, login_manager, limiter, mail
from .security import init_security, init_admin_allowlist
from .observability import init_logging, init_sentry


def _error_payload(error: str, code: int, **extra):
    payload = {"error": error, "code": code}
    payload.update(extra)
    return payload


def create_app(config_overrides=None):
    app = Flask(__name__, template_folder="templates")

    # ---- Rate limiting storage: shared Redis in staging/production ----
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        # Hard fail in stage/prod so we never silently run without RL storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")

    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    app.config.setdefault("RATELIMIT_DEFAULTS", ["1000 per hour"])
    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)

    # Config: clean, explicit, class-based
    app.config.from_object(get_config())
    if config_overrides:
        app.config.update(config_overrides)

    # --- Required env validation for prod-like envs (staging/production) ---
    def _require(name: str):
        val = os.getenv(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        # Enforce hard requirements at startup (not at import time)
        _require("SECRET_KEY")
        _require("DATABASE_URL")

    # Trust X-Forwarded-For/Proto only for the configured number of proxy hops
    x_for = int(app.config.get("PROXY_FIX_X_FOR") or 0)
    x_proto = int(app.config.get("PROXY_FIX_X_PROTO") or 0)
    if x_for or x_proto:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=x_for, x_proto=x_proto)

    # --- Observability & Security ---
    init_logging(app)
    init_sentry(app)

    # Apply HTTPS, HSTS & CSP only in staging/production
    if app_env in ("staging", "production"):
        init_security(app)
    init_admin_allowlist(app)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(os.path.dirname(app.root_path), "migrations"))
    csrf.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)

    from .services.ratelimit import init_rate_limits
    from .services.tasks import init_background
    init_rate_limits(app)
    init_background(app)

    # Blueprints (each carries its own /api/... prefix)
    from .blueprints.api import bp as api_bp
    from .blueprints.auth import bp as auth_bp
    from .blueprints.orgs import bp as orgs_bp
    from .blueprints.org_session import bp as org_session_bp
    from .blueprints.audit import bp as audit_bp
    from .blueprints.users import bp as users_bp
    from .blueprints.contact import bp as contact_bp
    from .blueprints.content import bp as content_bp
    from .blueprints.media import bp as media_bp
    from .blueprints.admin import bp as admin_bp

    for bp in (api_bp, auth_bp, orgs_bp, org_session_bp, audit_bp, users_bp,
               contact_bp, content_bp, media_bp, admin_bp):
        app.register_blueprint(bp)

    # Uploaded media (a reverse proxy usually serves these directly)
    @app.get(app.config["UPLOAD_URL_PREFIX"].rstrip("/") + "/<path:filename>")
    @limiter.exempt
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    # ---- Error handlers: every failure is JSON ----
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status_code, e.headers

    # CSRF error handler (clean 400 instead of generic 500)
    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return _error_payload("csrf_failed", 400, message=e.description), 400

    # 429 Too Many Requests from Flask-Limiter, with Retry-After
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {}
        payload = _error_payload("rate_limited", 429)
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
            payload["retry_after"] = int(retry_after)
        return payload, 429, headers

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        name = (e.name or "error").lower().replace(" ", "_")
        return _error_payload(name, e.code or 500), e.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception(json.dumps({
            "event": "unhandled_exception",
            "path": request.path,
            "method": request.method,
            "error": e.__class__.__name__,
        }))
        return _error_payload("internal_error", 500), 500

    # CLI commands (ops-grade utilities)
    from .cli import register_cli
    register_cli(app)

    return app
