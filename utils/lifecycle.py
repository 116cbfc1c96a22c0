# utils/lifecycle.py
"""
Booking state machine.

    PENDING     -> CONFIRMED | CANCELLED | NO_SHOW
    CONFIRMED   -> CHECKED_IN | CANCELLED | NO_SHOW
    CHECKED_IN  -> CHECKED_OUT | CANCELLED
    CHECKED_OUT -> COMPLETED
    COMPLETED, CANCELLED, NO_SHOW are terminal.

plan_transition() is pure: it answers "what happens" as a new status plus a
tuple of side effects. apply_transition() runs those effects against the
session. Room status changes live here and nowhere else.
"""
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from models import (
    db, Booking, BookingRoom, Room,
    ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER,
    BOOKING_PENDING, BOOKING_CONFIRMED, BOOKING_CHECKED_IN, BOOKING_CHECKED_OUT,
    BOOKING_COMPLETED, BOOKING_CANCELLED, BOOKING_NO_SHOW,
    ROOM_AVAILABLE, ROOM_OCCUPIED, ROOM_CLEANING, ROOM_OUT_OF_SERVICE,
)
from utils.availability import is_room_free
from utils.errors import Conflict, Forbidden, ValidationFailed

# Events
CONFIRM = "CONFIRM"
CHECK_IN = "CHECK_IN"
CHECK_OUT = "CHECK_OUT"
COMPLETE = "COMPLETE"
CANCEL = "CANCEL"
NO_SHOW = "NO_SHOW"

# Side effects
STAMP_CONFIRMER = "stamp_confirmer"
STAMP_CHECKED_IN = "stamp_checked_in"
STAMP_CHECKED_OUT = "stamp_checked_out"
STAMP_CANCELLED = "stamp_cancelled"
OCCUPY_ROOMS = "occupy_rooms"
ROOMS_TO_CLEANING = "rooms_to_cleaning"
RELEASE_ROOMS = "release_rooms"

CUSTOMER_CANCEL_REASON = "用户取消"
DESK_CANCEL_REASON = "前台取消"

TERMINAL_STATUSES = (BOOKING_COMPLETED, BOOKING_CANCELLED, BOOKING_NO_SHOW)
ASSIGNABLE_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED)
CUSTOMER_CANCELLABLE = (BOOKING_PENDING, BOOKING_CONFIRMED)

_TRANSITIONS = {
    (BOOKING_PENDING, CONFIRM): (BOOKING_CONFIRMED, (STAMP_CONFIRMER,)),
    (BOOKING_PENDING, CANCEL): (BOOKING_CANCELLED, (STAMP_CANCELLED, RELEASE_ROOMS)),
    (BOOKING_PENDING, NO_SHOW): (BOOKING_NO_SHOW, (RELEASE_ROOMS,)),
    (BOOKING_CONFIRMED, CHECK_IN): (BOOKING_CHECKED_IN, (STAMP_CHECKED_IN, OCCUPY_ROOMS)),
    (BOOKING_CONFIRMED, CANCEL): (BOOKING_CANCELLED, (STAMP_CANCELLED, RELEASE_ROOMS)),
    (BOOKING_CONFIRMED, NO_SHOW): (BOOKING_NO_SHOW, (RELEASE_ROOMS,)),
    (BOOKING_CHECKED_IN, CHECK_OUT): (BOOKING_CHECKED_OUT, (STAMP_CHECKED_OUT, ROOMS_TO_CLEANING)),
    (BOOKING_CHECKED_IN, CANCEL): (BOOKING_CANCELLED, (STAMP_CANCELLED, RELEASE_ROOMS)),
    (BOOKING_CHECKED_OUT, COMPLETE): (BOOKING_COMPLETED, ()),
}

# PATCH {"status": ...} on the back office maps onto events
EVENT_FOR_STATUS = {
    BOOKING_CONFIRMED: CONFIRM,
    BOOKING_CHECKED_IN: CHECK_IN,
    BOOKING_CHECKED_OUT: CHECK_OUT,
    BOOKING_COMPLETED: COMPLETE,
    BOOKING_CANCELLED: CANCEL,
    BOOKING_NO_SHOW: NO_SHOW,
}


@dataclass(frozen=True)
class Transition:
    old_status: str
    new_status: str
    effects: tuple


def plan_transition(status: str, event: str, actor_role: str) -> Transition:
    if actor_role == ROLE_CUSTOMER:
        if event != CANCEL:
            raise Forbidden("Customers can only cancel bookings.")
        if status not in CUSTOMER_CANCELLABLE:
            raise Conflict("Only pending or confirmed bookings can be cancelled.")

    step = _TRANSITIONS.get((status, event))
    if step is None:
        if status in TERMINAL_STATUSES:
            raise Conflict(f"Booking is already {status}.")
        raise Conflict(f"Cannot {event.lower().replace('_', ' ')} a booking that is {status}.")
    new_status, effects = step
    return Transition(status, new_status, effects)


# ---------------- Effects ----------------
def lock_booking_rooms(booking: Booking):
    ids = [br.room_id for br in booking.booking_rooms]
    if not ids:
        return []
    return Room.query.filter(Room.id.in_(ids)).with_for_update().all()


def stamp_confirmer(booking: Booking, actor):
    if actor is None:
        return
    if actor.role == ROLE_ADMIN:
        booking.confirmed_by_admin_id = actor.id
    elif actor.role == ROLE_STAFF:
        booking.confirmed_by_staff_id = actor.id


def release_rooms(rooms):
    # only rooms still held go back; a room already cleaned or taken out of service stays put
    for room in rooms:
        if room.status == ROOM_OCCUPIED:
            room.status = ROOM_AVAILABLE


def _run_effects(booking: Booking, effects, actor, reason):
    now = datetime.utcnow()
    for effect in effects:
        if effect == STAMP_CONFIRMER:
            stamp_confirmer(booking, actor)
        elif effect == STAMP_CHECKED_IN:
            booking.checked_in_at = now
        elif effect == STAMP_CHECKED_OUT:
            booking.checked_out_at = now
        elif effect == STAMP_CANCELLED:
            booking.cancelled_at = now
            booking.cancel_reason = reason
        elif effect == OCCUPY_ROOMS:
            for room in lock_booking_rooms(booking):
                room.status = ROOM_OCCUPIED
        elif effect == ROOMS_TO_CLEANING:
            for room in lock_booking_rooms(booking):
                if room.status != ROOM_OUT_OF_SERVICE:
                    room.status = ROOM_CLEANING
        elif effect == RELEASE_ROOMS:
            release_rooms(lock_booking_rooms(booking))


def apply_transition(booking: Booking, event: str, actor, *, reason: str | None = None,
                     commit: bool = True) -> Booking:
    """Move a booking through one event. Everything happens in the current transaction."""
    actor_role = actor.role if actor is not None else ROLE_ADMIN
    transition = plan_transition(booking.status, event, actor_role)

    if event == CHECK_IN and not booking.booking_rooms:
        raise Conflict("Assign a room before checking in.")
    if event == CANCEL and not reason:
        reason = CUSTOMER_CANCEL_REASON if actor_role == ROLE_CUSTOMER else DESK_CANCEL_REASON

    _run_effects(booking, transition.effects, actor, reason)
    booking.status = transition.new_status

    if commit:
        _commit()
    current_app.logger.info(
        "Booking #%s %s -> %s by %s", booking.id, transition.old_status, transition.new_status, actor_role
    )
    return booking


# ---------------- Room assignment ----------------
def _normalize_room_ids(room_ids) -> list[int]:
    if not isinstance(room_ids, (list, tuple)) or not room_ids:
        raise ValidationFailed("Select at least one room to assign.")
    ids = []
    for rid in room_ids:
        if isinstance(rid, bool):
            raise ValidationFailed(f"Invalid room id: {rid!r}")
        try:
            rid = int(rid)
        except (TypeError, ValueError):
            raise ValidationFailed(f"Invalid room id: {rid!r}") from None
        if rid not in ids:
            ids.append(rid)
    return ids


def lock_room_for(booking: Booking, room_id: int) -> Room:
    """Re-validate a room inside the transaction, holding a row lock until commit."""
    room = (
        Room.query
        .filter(Room.id == room_id, Room.store_id == booking.store_id, Room.is_active.is_(True))
        .with_for_update()
        .first()
    )
    if room is None or room.status != ROOM_AVAILABLE:
        raise Conflict(f"Room {room_id} is not available or does not belong to this store.")
    if not is_room_free(room, booking.check_in, booking.check_out, exclude_booking_id=booking.id):
        raise Conflict(f"Room {room.room_no} is already booked for these dates.")
    return room


def attach_rooms(booking: Booking, room_ids) -> list[BookingRoom]:
    """Lock, snapshot the nightly rate and occupy each room; any failure aborts the whole call."""
    created = []
    for rid in _normalize_room_ids(room_ids):
        room = lock_room_for(booking, rid)
        br = BookingRoom(room_id=room.id, nightly_rate=room.nightly_rate)
        booking.booking_rooms.append(br)
        room.status = ROOM_OCCUPIED
        created.append(br)
    db.session.flush()
    return created


def assign_rooms(booking: Booking, room_ids, actor, *, commit: bool = True) -> Booking:
    """
    Replace the booking's rooms with room_ids, all or nothing.

    Existing assignments are dropped and their rooms released first, so the
    call doubles as re-assignment. A PENDING booking becomes CONFIRMED.
    """
    if booking.status not in ASSIGNABLE_STATUSES:
        raise Conflict("Rooms can only be assigned to pending or confirmed bookings.")
    room_ids = _normalize_room_ids(room_ids)

    try:
        release_rooms(lock_booking_rooms(booking))
        booking.booking_rooms.clear()
        db.session.flush()

        attach_rooms(booking, room_ids)

        if booking.status == BOOKING_PENDING:
            transition = plan_transition(booking.status, CONFIRM, actor.role if actor else ROLE_ADMIN)
            _run_effects(booking, transition.effects, actor, None)
            booking.status = transition.new_status

        if commit:
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Booking #%s assigned rooms %s", booking.id, room_ids)
    return booking


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
