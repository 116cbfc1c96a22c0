# utils/http.py
from flask import current_app, jsonify, request

from utils.errors import ValidationFailed


def ok(status=200, **data):
    return jsonify({"ok": True, **data}), status


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationFailed("Request body must be a JSON object.")
    return body


def optional_int(value, field: str):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationFailed(f"Invalid {field}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid {field}: {value!r}") from None


def required_int(value, field: str) -> int:
    parsed = optional_int(value, field)
    if parsed is None:
        raise ValidationFailed(f"Missing {field}.")
    return parsed


def page_args(default_size=None, max_size=100):
    """(page, page_size) from ?page=&pageSize=, clamped to sane bounds."""
    default_size = default_size or current_app.config.get("BOOKINGS_PAGE_SIZE", 10)
    page = optional_int(request.args.get("page"), "page") or 1
    size = optional_int(request.args.get("pageSize"), "pageSize") or default_size
    return max(page, 1), min(max(size, 1), max_size)


def page_meta(pagination) -> dict:
    return {
        "page": pagination.page,
        "pageSize": pagination.per_page,
        "total": pagination.total,
        "totalPages": pagination.pages,
    }


def list_arg(name: str) -> list[str]:
    """?amenities=wifi,tv or ?amenities=wifi&amenities=tv"""
    values = []
    for raw in request.args.getlist(name):
        values.extend(v.strip() for v in raw.split(",") if v.strip())
    return values
