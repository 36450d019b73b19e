import json

from flask import current_app, request
from flask_talisman import Talisman

from orgcms.errors import Forbidden
from orgcms.services.ratelimit import client_ip

# Paths behind the ADMIN_IPS allow-list
_ADMIN_PREFIXES = ("/api/admin", "/api/media")


def init_security(app):
    """
    Production/staging security headers. The app only serves JSON, so the
    CSP denies everything a browser could load from a response.
    """
    csp = {
        "default-src": ["'none'"],
        "img-src":     ["'self'", "data:"],
        "frame-ancestors": ["'none'"],
        "base-uri":    ["'none'"],
        "form-action": ["'self'"],
    }

    Talisman(
        app,
        content_security_policy=csp,
        force_https=True,
        strict_transport_security=True,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )


def init_admin_allowlist(app):
    """Restrict the admin surface to ADMIN_IPS outside development; empty list = open."""

    @app.before_request
    def _admin_ip_allowlist():
        if not request.path.startswith(_ADMIN_PREFIXES):
            return None
        if current_app.config.get("APP_ENV", "development").lower() == "development":
            return None
        allowed = current_app.config.get("ADMIN_IPS") or []
        if not allowed:
            return None
        ip = client_ip()
        if ip not in allowed:
            current_app.logger.warning(json.dumps({"event": "admin_ip_blocked", "ip": ip, "path": request.path}))
            raise Forbidden("ip_not_allowed")
        return None
