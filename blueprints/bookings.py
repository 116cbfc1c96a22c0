# blueprints/bookings.py
from flask import Blueprint, request
from flask_login import current_user

from models import db, Booking
from utils.availability import assignable_rooms, parse_day
from utils.errors import NotFound, ValidationFailed
from utils.http import json_body, ok, optional_int, page_args, page_meta, required_int
from utils.lifecycle import EVENT_FOR_STATUS, apply_transition, assign_rooms
from utils.reservations import create_desk_booking, delete_booking, filtered_bookings, reprice
from utils.role_gate import admin_only, back_office, ensure_store_access, store_scope

bp = Blueprint("bookings", __name__, url_prefix="/admin/bookings")


# ---------------- Helpers ----------------
def _load(booking_id) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found.")
    ensure_store_access(booking.store_id)
    return booking


# ---------------- List / create ----------------
@bp.get("")
@back_office()
def list_bookings():
    # staff always see their own store, whatever storeId says
    store_id = store_scope() or optional_int(request.args.get("storeId"), "storeId")
    page, size = page_args()
    pagination = filtered_bookings(request.args, store_id).paginate(page=page, per_page=size, error_out=False)
    return ok(bookings=[b.to_dict() for b in pagination.items], **page_meta(pagination))


@bp.post("")
@back_office()
def create_booking():
    body = json_body()
    store_id = required_int(body.get("storeId") or store_scope(), "storeId")
    ensure_store_access(store_id)

    room_ids = body.get("roomIds") or None
    if room_ids is not None and not isinstance(room_ids, list):
        raise ValidationFailed("roomIds must be a list.")

    booking = create_desk_booking(
        current_user,
        customer_id=required_int(body.get("customerId"), "customerId"),
        store_id=store_id,
        room_type_id=required_int(body.get("roomTypeId"), "roomTypeId"),
        check_in=parse_day(body.get("checkIn"), "checkIn"),
        check_out=parse_day(body.get("checkOut"), "checkOut"),
        room_ids=room_ids,
        total_price=body.get("totalPrice"),
    )
    return ok(201, booking=booking.to_dict())


# ---------------- Detail ----------------
@bp.get("/<int:booking_id>")
@back_office()
def booking_detail(booking_id):
    return ok(booking=_load(booking_id).to_dict())


@bp.patch("/<int:booking_id>")
@back_office()
def booking_update(booking_id):
    booking = _load(booking_id)
    body = json_body()
    if "status" not in body and "totalPrice" not in body:
        raise ValidationFailed("Nothing to update.")

    if "totalPrice" in body:
        reprice(booking, body["totalPrice"])

    status = body.get("status")
    if status and status != booking.status:
        event = EVENT_FOR_STATUS.get(status)
        if event is None:
            raise ValidationFailed(f"Cannot move a booking to {status!r}.")
        reason = (body.get("cancelReason") or "").strip() or None
        apply_transition(booking, event, current_user, reason=reason)
    else:
        db.session.commit()
    return ok(booking=booking.to_dict())


@bp.delete("/<int:booking_id>")
@admin_only()
def booking_delete(booking_id):
    delete_booking(_load(booking_id))
    return ok()


# ---------------- Rooms ----------------
@bp.get("/<int:booking_id>/available-rooms")
@back_office()
def available_rooms(booking_id):
    booking = _load(booking_id)
    room_type_id = optional_int(request.args.get("roomTypeId"), "roomTypeId")
    rooms = assignable_rooms(booking, room_type_id)

    floors = {}
    for room in rooms:
        floors.setdefault(room.floor, []).append(room.to_dict())
    return ok(
        rooms=[r.to_dict() for r in rooms],
        floors=[{"floor": f, "rooms": items} for f, items in sorted(floors.items())],
    )


@bp.post("/<int:booking_id>/assign-rooms")
@admin_only()
def assign(booking_id):
    booking = _load(booking_id)
    assign_rooms(booking, json_body().get("roomIds"), current_user)
    return ok(booking=booking.to_dict())
