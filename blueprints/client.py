from flask import Blueprint, request
from flask_login import current_user

from models import db, Booking, Store, RoomType
from utils.availability import parse_day, room_type_availability, validate_range
from utils.errors import Forbidden, NotFound, ValidationFailed
from utils.http import json_body, list_arg, ok, optional_int, required_int
from utils.lifecycle import CANCEL, apply_transition
from utils.ratings import store_ratings, submit_review
from utils.reservations import create_customer_booking
from utils.role_gate import customer_only

bp = Blueprint("client", __name__, url_prefix="/client")


def _own_booking(booking_id) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found.")
    if booking.customer_id != current_user.id:
        raise Forbidden("This booking belongs to another customer.")
    return booking


# ---------------- Search ----------------
@bp.get("/room-types")
def room_types():
    store_id = required_int(request.args.get("storeId"), "storeId")
    check_in = parse_day(request.args.get("checkIn"), "checkIn")
    check_out = parse_day(request.args.get("checkOut"), "checkOut")

    store = db.session.get(Store, store_id)
    if store is None or not store.is_active:
        raise NotFound("Store not found.")

    items = room_type_availability(
        store.id, check_in, check_out,
        room_type_id=optional_int(request.args.get("roomTypeId"), "roomTypeId"),
        amenities=list_arg("amenities"),
    )
    return ok(roomTypes=items)


@bp.get("/room-types-list")
def room_types_list():
    rows = RoomType.query.filter(RoomType.is_active.is_(True)).order_by(RoomType.name.asc()).all()
    return ok(roomTypes=[{"id": rt.id, "name": rt.name} for rt in rows])


@bp.post("/filter-stores")
def filter_stores():
    body = json_body()
    check_in = parse_day(body.get("checkIn"), "checkIn")
    check_out = parse_day(body.get("checkOut"), "checkOut")
    validate_range(check_in, check_out)

    amenities = body.get("amenities") or []
    if not isinstance(amenities, list):
        raise ValidationFailed("amenities must be a list.")
    name = (body.get("roomTypeName") or "").strip() or None

    stores = Store.query.filter(Store.is_active.is_(True)).order_by(Store.name.asc()).all()
    matches = []
    for store in stores:
        types = room_type_availability(store.id, check_in, check_out, amenities=amenities, name=name)
        if types:
            matches.append((store, types))

    ratings = store_ratings([s.id for s, _ in matches])
    result = []
    for store, types in matches:
        data = {"id": store.id, "name": store.name, "address": store.address, "roomTypes": types}
        data.update(ratings[store.id])
        result.append(data)
    return ok(stores=result)


# ---------------- Bookings ----------------
@bp.get("/bookings")
@customer_only()
def my_bookings():
    rows = (
        Booking.query
        .filter(Booking.customer_id == current_user.id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )
    return ok(bookings=[b.to_dict() for b in rows])


@bp.post("/bookings")
@customer_only()
def create_booking():
    body = json_body()
    booking = create_customer_booking(
        current_user,
        store_id=required_int(body.get("storeId"), "storeId"),
        room_type_id=required_int(body.get("roomTypeId"), "roomTypeId"),
        check_in=parse_day(body.get("checkIn"), "checkIn"),
        check_out=parse_day(body.get("checkOut"), "checkOut"),
    )
    return ok(201, booking=booking.to_dict())


@bp.post("/bookings/<int:booking_id>/cancel")
@customer_only()
def cancel_booking(booking_id):
    booking = _own_booking(booking_id)
    reason = (json_body().get("reason") or "").strip() or None
    apply_transition(booking, CANCEL, current_user, reason=reason)
    return ok(booking=booking.to_dict())


@bp.post("/bookings/review")
@customer_only()
def review_booking():
    body = json_body()
    booking = _own_booking(required_int(body.get("bookingId"), "bookingId"))
    review = submit_review(current_user, booking, body.get("rating"), body.get("comment"))
    return ok(201, review={
        "id": review.id,
        "bookingId": review.booking_id,
        "storeId": review.store_id,
        "rating": review.rating,
        "comment": review.comment,
        "createdAt": review.created_at.isoformat() if review.created_at else None,
    })
