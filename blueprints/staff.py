# blueprints/staff.py
"""Front desk of the staff member's assigned store."""
from flask import Blueprint, current_app, request
from flask_login import current_user

from models import (
    db, Booking, BookingRoom, Room,
    ROLE_STAFF, ROOM_STATUSES, BOOKING_CONFIRMED, BOOKING_CHECKED_IN, BLOCKING_STATUSES,
)
from utils.errors import NotFound, ValidationFailed
from utils.http import json_body, ok, page_args, page_meta
from utils.lifecycle import (
    CANCEL, CHECK_IN, CHECK_OUT, COMPLETE, CONFIRM, NO_SHOW,
    apply_transition, assign_rooms,
)
from utils.reservations import filtered_bookings
from utils.role_gate import require_role

bp = Blueprint("staff", __name__, url_prefix="/staff/store")

ACTION_EVENTS = {
    "confirm": CONFIRM,
    "checkin": CHECK_IN,
    "checkout": CHECK_OUT,
    "complete": COMPLETE,
    "no_show": NO_SHOW,
    "cancel": CANCEL,
}


def _desk_only():
    return require_role(ROLE_STAFF, need_store=True)


def _store_booking(booking_id) -> Booking:
    booking = Booking.query.filter_by(id=booking_id, store_id=current_user.assigned_store_id).first()
    if booking is None:
        raise NotFound("Booking not found in your store.")
    return booking


@bp.get("")
@_desk_only()
def store_info():
    store = current_user.assigned_store
    data = store.to_dict()
    data["roomCount"] = Room.query.filter_by(store_id=store.id, is_active=True).count()
    data["activeBookingCount"] = Booking.query.filter(
        Booking.store_id == store.id, Booking.status.in_(BLOCKING_STATUSES)
    ).count()
    return ok(store=data)


@bp.get("/rooms")
@_desk_only()
def rooms():
    store_id = current_user.assigned_store_id
    rows = (
        Room.query.filter(Room.store_id == store_id, Room.is_active.is_(True))
        .order_by(Room.floor.asc(), Room.room_no.asc())
        .all()
    )
    # the booking currently holding each room, if any
    holding = (
        db.session.query(BookingRoom.room_id, Booking)
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .filter(
            Booking.store_id == store_id,
            Booking.status.in_((BOOKING_CONFIRMED, BOOKING_CHECKED_IN)),
        )
        .order_by(Booking.check_in.asc())
        .all()
    )
    current = {}
    for room_id, booking in holding:
        current.setdefault(room_id, booking)

    items = []
    for room in rows:
        data = room.to_dict()
        b = current.get(room.id)
        data["currentBooking"] = {
            "id": b.id,
            "status": b.status,
            "checkIn": b.check_in.isoformat(),
            "checkOut": b.check_out.isoformat(),
            "customerName": b.customer.name if b.customer else None,
        } if b else None
        items.append(data)
    return ok(rooms=items)


@bp.put("/rooms/<int:room_id>/status")
@_desk_only()
def room_status(room_id):
    room = Room.query.filter_by(id=room_id, store_id=current_user.assigned_store_id).first()
    if room is None:
        raise NotFound("Room not found in your store.")
    status = json_body().get("status")
    if status not in ROOM_STATUSES:
        raise ValidationFailed(f"Unknown room status: {status!r}")

    old = room.status
    room.status = status
    db.session.commit()
    current_app.logger.info("Room #%s %s -> %s by staff %s", room.id, old, status, current_user.id)
    return ok(room=room.to_dict())


@bp.get("/bookings")
@_desk_only()
def bookings():
    args = request.args.to_dict()
    active_only = args.get("status") == "active"
    # ?status=active means "still holding rooms"; ?bookingStatus= picks one exact status
    args["status"] = args.pop("bookingStatus", None) or (None if active_only else args.get("status"))
    q = filtered_bookings(args, current_user.assigned_store_id)
    if active_only:
        q = q.filter(Booking.status.in_(BLOCKING_STATUSES))

    page, size = page_args()
    pagination = q.paginate(page=page, per_page=size, error_out=False)
    return ok(bookings=[b.to_dict() for b in pagination.items], **page_meta(pagination))


@bp.patch("/bookings/<int:booking_id>")
@_desk_only()
def booking_action(booking_id):
    booking = _store_booking(booking_id)
    body = json_body()
    action = (body.get("action") or "").lower()

    if action == "assign":
        # assign and check in as one transaction
        assign_rooms(booking, body.get("roomIds"), current_user, commit=False)
        apply_transition(booking, CHECK_IN, current_user)
        return ok(booking=booking.to_dict())

    event = ACTION_EVENTS.get(action)
    if event is None:
        raise ValidationFailed(f"Unknown action: {action!r}")
    reason = (body.get("reason") or "").strip() or None
    apply_transition(booking, event, current_user, reason=reason)
    return ok(booking=booking.to_dict())
