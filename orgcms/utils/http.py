from flask import request

from orgcms.errors import BadRequest


def json_body() -> dict:
    """Request JSON object; 400 when the body is missing or not an object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("invalid_json")
    return data


def int_arg(name: str, default=None, *, minimum=None, maximum=None, error=None):
    """Integer query arg clamped to [minimum, maximum]; 400 when not an integer."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(error or f"invalid_{name}")
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def pagination(total: int, page: int, limit: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
