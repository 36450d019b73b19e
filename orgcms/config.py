import os

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    WTF_CSRF_TIME_LIMIT = None

    # Database (env in prod; dev/test may use default)
    try:
        from dotenv import dotenv_values
        _ENV_FALLBACK = dotenv_values(".env")
    except Exception:
        _ENV_FALLBACK = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///orgcms.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    APP_ENV = os.environ.get("APP_ENV", "development")

    # Cookies: secure-by-default
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # --- Org context ---
    # Explicit per-request override; trusted as-is, membership is checked by the guards
    ORG_HEADER = os.getenv("ORG_HEADER", "X-Org-Id")

    # --- Rate limiting ---
    # Flask-Limiter default: off globally; prefer per-route limits
    RATELIMIT_DEFAULT = None
    RATELIMIT_ENABLED = (os.getenv("RATELIMIT_ENABLED", "true").lower() == "true")
    # Named sliding-window limiters (services/ratelimit.py)
    AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "3/minute")      # login/signup
    API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "10/minute")       # general API
    STRICT_RATE_LIMIT = os.getenv("STRICT_RATE_LIMIT", "1/minute")  # critical operations

    # --- Uploads ---
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(os.getcwd(), "public", "uploads"))
    UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(12 * 1024 * 1024)))

    # --- Content ---
    CONTENT_DEFAULT_LOCALE = os.getenv("CONTENT_DEFAULT_LOCALE", "tr")

    # --- Admin surface ---
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
    # Comma separated; empty means no IP restriction
    ADMIN_IPS = [ip.strip() for ip in os.getenv("ADMIN_IPS", "").split(",") if ip.strip()]

    # --- Mail ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = (os.getenv("MAIL_USE_TLS", "true").lower() == "true")
    MAIL_USE_SSL = (os.getenv("MAIL_USE_SSL", "false").lower() == "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "OrgCMS <no-reply@local.test>")
    MAIL_SUPPRESS_SEND = (os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true")

    # Fire-and-forget side effects (mail); inline = run before the response returns
    BACKGROUND_TASKS_INLINE = False
    BACKGROUND_MAX_WORKERS = int(os.getenv("BACKGROUND_MAX_WORKERS", "4"))

    SITE_NAME = os.getenv("SITE_NAME", "OrgCMS")

    # Reverse proxies in front of the app; 0 = ignore X-Forwarded-* entirely
    PROXY_FIX_X_FOR = int(os.getenv("PROXY_FIX_X_FOR", "0"))
    PROXY_FIX_X_PROTO = int(os.getenv("PROXY_FIX_X_PROTO", "0"))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    MAIL_SUPPRESS_SEND = True

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")
    MAIL_SUPPRESS_SEND = False

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    BACKGROUND_TASKS_INLINE = True

_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "staging": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
