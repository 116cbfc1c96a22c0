# utils/role_gate.py
from functools import wraps
from flask_login import current_user

from models import ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER
from utils.errors import Unauthorized, Forbidden

# Usage:
# @require_role(ROLE_ADMIN)                    -> admins only (catalog, users)
# @require_role(ROLE_ADMIN, ROLE_STAFF)        -> back office (bookings)
# @require_role(ROLE_STAFF, need_store=True)   -> front desk of an assigned store
def require_role(*roles: str, need_store: bool = False):
    allowed = set(roles)

    def _wrap(f):
        @wraps(f)
        def _inner(*args, **kwargs):
            # must be logged in
            if not current_user.is_authenticated:
                raise Unauthorized("Please login.")

            if current_user.role not in allowed:
                raise Forbidden("You do not have permission to do this.")

            # unassigned staff cannot manage any store
            if need_store and current_user.role == ROLE_STAFF and not current_user.assigned_store_id:
                raise Forbidden("You are not assigned to a store.")

            return f(*args, **kwargs)
        return _inner
    return _wrap


# Convenience gates
def admin_only():
    return require_role(ROLE_ADMIN)


def back_office():
    return require_role(ROLE_ADMIN, ROLE_STAFF, need_store=True)


def customer_only():
    return require_role(ROLE_CUSTOMER)


def store_scope():
    """Store id the current principal is limited to, or None when it may see every store."""
    if current_user.role == ROLE_STAFF:
        return current_user.assigned_store_id
    return None


def ensure_store_access(store_id: int):
    if current_user.role == ROLE_STAFF and store_scope() != store_id:
        raise Forbidden("This store is outside your access.")
