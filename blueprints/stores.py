from flask import Blueprint
from flask_login import current_user
from sqlalchemy import func

from models import (
    db, Store, Room, Booking, BookingReview,
    ROLE_ADMIN, ROLE_STAFF, BLOCKING_STATUSES,
)
from utils.http import ok, page_args, page_meta
from utils.ratings import store_rating, store_ratings
from utils.role_gate import store_scope

bp = Blueprint("stores", __name__, url_prefix="/stores")

ANONYMOUS_REVIEWER = "匿名用户"


def _count_by_store(query, column, store_ids):
    rows = query.filter(column.in_(store_ids)).group_by(column).with_entities(column, func.count()).all()
    return dict(rows)


def _back_office_view():
    q = Store.query
    scope = store_scope()
    if current_user.role == ROLE_STAFF:
        if not scope:
            return []
        q = q.filter(Store.id == scope)
    stores = q.order_by(Store.name.asc()).all()
    ids = [s.id for s in stores]
    if not ids:
        return []

    room_counts = _count_by_store(Room.query.filter(Room.is_active.is_(True)), Room.store_id, ids)
    booking_counts = _count_by_store(
        Booking.query.filter(Booking.status.in_(BLOCKING_STATUSES)), Booking.store_id, ids
    )
    result = []
    for s in stores:
        data = s.to_dict()
        data["roomCount"] = room_counts.get(s.id, 0)
        data["activeBookingCount"] = booking_counts.get(s.id, 0)
        result.append(data)
    return result


def _public_view():
    stores = Store.query.filter(Store.is_active.is_(True)).order_by(Store.name.asc()).all()
    ratings = store_ratings([s.id for s in stores])
    result = []
    for s in stores:
        data = {"id": s.id, "name": s.name, "address": s.address}
        data.update(ratings[s.id])
        result.append(data)
    return result


@bp.get("")
def list_stores():
    if current_user.is_authenticated and current_user.role in (ROLE_ADMIN, ROLE_STAFF):
        return ok(stores=_back_office_view())
    return ok(stores=_public_view())


@bp.get("/<int:store_id>/reviews")
def store_reviews(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    page, size = page_args(default_size=5, max_size=20)

    pagination = db.paginate(
        db.select(BookingReview)
        .filter(BookingReview.store_id == store.id)
        .order_by(BookingReview.created_at.desc(), BookingReview.id.desc()),
        page=page, per_page=size, error_out=False,
    )
    reviews = []
    for r in pagination.items:
        reviewer = (r.customer.name or r.customer.email) if r.customer else None
        reviews.append({
            "id": r.id,
            "bookingId": r.booking_id,
            "rating": r.rating,
            "comment": r.comment,
            "createdAt": r.created_at.isoformat() if r.created_at else None,
            "customerName": reviewer or ANONYMOUS_REVIEWER,
        })

    return ok(
        store={"id": store.id, "name": store.name},
        rating=store_rating(store.id),
        reviews=reviews,
        **page_meta(pagination),
    )
