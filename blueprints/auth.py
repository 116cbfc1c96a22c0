import re

from flask import Blueprint, current_app, request
from flask_login import current_user

from models import db, Customer, LOGIN_ORDER, find_principal_by_email
from utils.errors import Conflict, Unauthorized, ValidationFailed
from utils.http import json_body, ok
from utils.role_gate import customer_only
from utils.session import (
    SCOPES, SCOPE_ROLES, apply_session, clear_session, scope_for_role,
)

bp = Blueprint("auth", __name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^1[3-9]\d{9}$")
MIN_PASSWORD = 6


def _email(value) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationFailed("A valid email is required.")
    return email


@bp.post("/auth/login")
def login():
    body = json_body()
    email = (body.get("email") or "").strip().lower()
    password = body.get("password") or ""
    scope = body.get("scope")
    if not email or not password:
        raise ValidationFailed("Email and password are required.")
    if scope is not None and scope not in SCOPES:
        raise ValidationFailed(f"Unknown scope: {scope!r}")

    principal = find_principal_by_email(email, SCOPE_ROLES[scope] if scope else LOGIN_ORDER)
    if not principal or not principal.check_password(password):
        current_app.logger.warning("Failed login for %s", email)
        raise Unauthorized("Invalid email or password.")

    resp, status = ok(user=principal.to_dict(), scope=scope_for_role(principal.role))
    apply_session(resp, principal)
    current_app.logger.info("%s %s logged in", principal.role, principal.id)
    return resp, status


@bp.post("/auth/register")
def register():
    body = json_body()
    email = _email(body.get("email"))
    password = body.get("password") or ""
    name = (body.get("name") or "").strip() or None
    if len(password) < MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD} characters.")
    if Customer.query.filter_by(email=email).first():
        raise Conflict("Email already in use.")

    customer = Customer(email=email, name=name)
    customer.set_password(password)
    db.session.add(customer)
    db.session.commit()
    current_app.logger.info("Customer %s registered", customer.id)

    resp, _ = ok(user=customer.to_dict())
    apply_session(resp, customer)
    return resp, 201


@bp.post("/auth/logout")
def logout():
    scope = (json_body().get("scope") or request.args.get("scope") or "both").lower()
    if scope == "both":
        scopes = SCOPES
    elif scope in SCOPES:
        scopes = (scope,)
    else:
        raise ValidationFailed(f"Unknown scope: {scope!r}")

    resp, status = ok()
    for s in scopes:
        clear_session(resp, s)
    return resp, status


@bp.get("/auth/me")
def me():
    if not current_user.is_authenticated:
        raise Unauthorized("Please login.")
    return ok(user=current_user.to_dict())


@bp.patch("/client/profile")
@customer_only()
def update_profile():
    body = json_body()
    customer = current_user

    if "name" in body:
        name = (body.get("name") or "").strip()
        if not name:
            raise ValidationFailed("Name cannot be empty.")
        customer.name = name
    if "phone" in body:
        phone = (body.get("phone") or "").strip()
        if phone and not PHONE_RE.match(phone):
            raise ValidationFailed("Phone must be an 11-digit mobile number.")
        customer.phone = phone or None

    db.session.commit()
    return ok(user=customer.to_dict())

