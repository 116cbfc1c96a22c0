# utils/session.py
"""
Signed session cookies.

Two independent scopes: the "admin" cookie carries ADMIN/STAFF sessions and
the "client" cookie carries CUSTOMER sessions. The token body is
{"userId": ..., "role": ...}, base64url encoded and signed with HMAC-SHA256;
it expires after SESSION_MAX_AGE seconds.
"""
import hashlib

from flask import current_app, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from models import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_STAFF, load_principal

SCOPE_ADMIN = "admin"
SCOPE_CLIENT = "client"
SCOPES = (SCOPE_ADMIN, SCOPE_CLIENT)

COOKIE_NAMES = {
    SCOPE_ADMIN: "hotel_admin_session",
    SCOPE_CLIENT: "hotel_client_session",
}

SCOPE_ROLES = {
    SCOPE_ADMIN: (ROLE_ADMIN, ROLE_STAFF),
    SCOPE_CLIENT: (ROLE_CUSTOMER,),
}


def scope_for_role(role: str) -> str:
    return SCOPE_CLIENT if role == ROLE_CUSTOMER else SCOPE_ADMIN


def _serializer(scope: str) -> URLSafeTimedSerializer:
    secret = current_app.config.get("SESSION_SECRET")
    if not secret:
        raise RuntimeError("SESSION_SECRET is not set")
    return URLSafeTimedSerializer(
        secret,
        salt=f"hotel-{scope}-session",
        signer_kwargs={"digest_method": hashlib.sha256},
    )


def create_session_token(user_id: int, role: str) -> str:
    return _serializer(scope_for_role(role)).dumps({"userId": user_id, "role": role})


def parse_session_token(token: str, scope: str) -> dict | None:
    """Return the payload, or None if the token is forged, expired or from the wrong scope."""
    try:
        payload = _serializer(scope).loads(token, max_age=current_app.config["SESSION_MAX_AGE"])
    except BadSignature:
        return None
    if not isinstance(payload, dict) or payload.get("role") not in SCOPE_ROLES[scope]:
        return None
    return payload


def apply_session(response, principal):
    scope = scope_for_role(principal.role)
    response.set_cookie(
        COOKIE_NAMES[scope],
        create_session_token(principal.id, principal.role),
        max_age=current_app.config["SESSION_MAX_AGE"],
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        path="/",
    )
    return response


def clear_session(response, scope: str):
    response.delete_cookie(
        COOKIE_NAMES[scope],
        path="/",
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


def _scopes_for_path(path: str):
    if path.startswith("/client"):
        return (SCOPE_CLIENT,)
    if path.startswith("/admin") or path.startswith("/staff"):
        return (SCOPE_ADMIN,)
    return (SCOPE_ADMIN, SCOPE_CLIENT)


def principal_from_request(req=None):
    """Flask-Login request_loader: resolve the cookie(s) valid for this path to a principal."""
    req = req or request
    for scope in _scopes_for_path(req.path):
        token = req.cookies.get(COOKIE_NAMES[scope])
        if not token:
            continue
        payload = parse_session_token(token, scope)
        if not payload:
            continue
        principal = load_principal(payload["role"], payload.get("userId"))
        if principal is not None:
            return principal
    return None
