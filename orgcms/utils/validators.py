import re

# Simple, pragmatic patterns
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_ORG_NAME_RE = re.compile(r"^[A-Za-z0-9\s\-_]+$")
_LOCALE_RE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")
_CONTENT_KEY_RE = re.compile(r"^[A-Za-z0-9._\-]+$")

PASSWORD_MIN_LENGTH = 8
ORG_NAME_MAX_LENGTH = 100

def clean_str(val: str | None, max_len: int = 255) -> str | None:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    """
    if val is None or not isinstance(val, str):
        return None
    s = re.sub(r"\s+", " ", val).strip()
    if not s:
        return None
    return s[:max_len]

def normalize_email(val: str | None) -> str:
    if not isinstance(val, str):
        return ""
    return val.strip().lower()

def is_valid_email(val: str | None) -> bool:
    return isinstance(val, str) and bool(_EMAIL_RE.match(val))

def password_errors(val) -> list:
    if not isinstance(val, str) or len(val) < PASSWORD_MIN_LENGTH:
        return [f"Password must be at least {PASSWORD_MIN_LENGTH} characters."]
    if not _PASSWORD_RE.match(val):
        return ["Password must contain a lowercase letter, an uppercase letter and a digit."]
    return []

def org_name_error(val):
    """None when valid, else a message."""
    if not isinstance(val, str) or not val.strip():
        return "Organization name is required."
    if len(val) > ORG_NAME_MAX_LENGTH:
        return "Organization name is too long."
    if not _ORG_NAME_RE.match(val):
        return "Organization name may only contain letters, digits, spaces, '-' and '_'."
    return None

def is_valid_locale(val) -> bool:
    return isinstance(val, str) and bool(_LOCALE_RE.match(val))

def is_valid_content_key(val) -> bool:
    return isinstance(val, str) and 0 < len(val) <= 100 and bool(_CONTENT_KEY_RE.match(val))

def normalize_phone(val: str | None) -> str | None:
    """
    Keep digits and a leading '+'; 7-15 digits. Returns None if invalid or empty.
    """
    if not val or not isinstance(val, str):
        return None
    digits = "".join(re.findall(r"\d", val))
    if not 7 <= len(digits) <= 15:
        return None
    return ("+" if val.strip().startswith("+") else "") + digits

def validate_signup(data: dict):
    """Returns (cleaned, errors) where errors is a list of {field, message}."""
    errors = []
    email = normalize_email(data.get("email"))
    password = data.get("password")
    name = data.get("name")
    org_name = data.get("orgName")

    if not is_valid_email(email):
        errors.append({"field": "email", "message": "A valid email address is required."})
    for msg in password_errors(password):
        errors.append({"field": "password", "message": msg})
    if name is not None and not clean_str(name):
        errors.append({"field": "name", "message": "Name must not be empty."})
    if org_name is not None and not clean_str(org_name):
        errors.append({"field": "orgName", "message": "Organization name must not be empty."})

    cleaned = {
        "email": email,
        "password": password,
        "name": clean_str(name),
        "org_name": clean_str(org_name),
    }
    return cleaned, errors

def validate_contact(data: dict):
    """Returns (cleaned, errors) for a public contact form submission."""
    errors = []
    name = clean_str(data.get("name"), max_len=100)
    email = normalize_email(data.get("email"))
    phone_raw = data.get("phone")
    phone = normalize_phone(phone_raw)
    message = data.get("message").strip() if isinstance(data.get("message"), str) else ""
    service = clean_str(data.get("service"), max_len=100)

    if not name or len(name) < 2:
        errors.append({"field": "name", "message": "Name must be at least 2 characters."})
    if not is_valid_email(email):
        errors.append({"field": "email", "message": "A valid email address is required."})
    if phone_raw and not phone:
        errors.append({"field": "phone", "message": "Phone number is not valid."})
    if not service:
        errors.append({"field": "service", "message": "Service is required."})
    if len(message) < 10:
        errors.append({"field": "message", "message": "Message must be at least 10 characters."})
    elif len(message) > 5000:
        errors.append({"field": "message", "message": "Message is too long."})

    cleaned = {
        "name": name,
        "email": email,
        "phone": phone,
        "company": clean_str(data.get("company"), max_len=200),
        "service": service,
        "sub_service": clean_str(data.get("subService"), max_len=100),
        "message": message,
    }
    return cleaned, errors
