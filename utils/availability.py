# utils/availability.py
"""
Room availability for a store and a date range.

A room is taken for [check_in, check_out) when it is linked through a
BookingRoom to a booking in a blocking status whose own range overlaps,
using half-open intervals:

    existing.check_in < requested.check_out and existing.check_out > requested.check_in

Inactive and OUT_OF_SERVICE rooms are never offered.
"""
from datetime import date, datetime

from sqlalchemy import func

from models import (
    db, Room, RoomType, Booking, BookingRoom,
    BLOCKING_STATUSES, ROOM_AVAILABLE, ROOM_OUT_OF_SERVICE,
)
from utils.errors import ValidationFailed


# ---------------- Dates ----------------
def parse_day(value, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = (value or "").strip() if isinstance(value, str) else ""
    if not s:
        raise ValidationFailed(f"Missing {field}.")
    # accept full ISO timestamps from date pickers, keep the calendar day
    s = s.replace("Z", "").split("T")[0].split(" ")[0]
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise ValidationFailed(f"Invalid {field}: {value!r}") from None


def validate_range(check_in: date, check_out: date) -> int:
    """Return the number of nights; zero or negative stays are rejected."""
    nights = (check_out - check_in).days
    if nights <= 0:
        raise ValidationFailed("Check-out date must be after check-in date.")
    return nights


# ---------------- Queries ----------------
def blocked_room_ids(check_in: date, check_out: date, exclude_booking_id: int | None = None):
    """SELECT of room ids held by an overlapping blocking booking."""
    q = (
        db.select(BookingRoom.room_id)
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .where(
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    return q


def free_rooms_query(store_id: int, check_in: date, check_out: date,
                     room_type_id: int | None = None, exclude_booking_id: int | None = None):
    q = Room.query.filter(
        Room.store_id == store_id,
        Room.is_active.is_(True),
        Room.status != ROOM_OUT_OF_SERVICE,
        Room.id.not_in(blocked_room_ids(check_in, check_out, exclude_booking_id)),
    )
    if room_type_id is not None:
        q = q.filter(Room.room_type_id == room_type_id)
    return q


def is_room_free(room: Room, check_in: date, check_out: date, exclude_booking_id: int | None = None) -> bool:
    if not room.is_active or room.status == ROOM_OUT_OF_SERVICE:
        return False
    clash = db.session.execute(
        blocked_room_ids(check_in, check_out, exclude_booking_id).where(BookingRoom.room_id == room.id).limit(1)
    ).first()
    return clash is None


def available_counts(store_id: int, check_in: date, check_out: date,
                     room_type_id: int | None = None) -> dict[int, int]:
    """room_type_id -> number of rooms free for the whole range."""
    q = (
        free_rooms_query(store_id, check_in, check_out, room_type_id)
        .with_entities(Room.room_type_id, func.count(Room.id))
        .group_by(Room.room_type_id)
    )
    return {rt_id: count for rt_id, count in q.all()}


def available_count(store_id: int, room_type_id: int, check_in: date, check_out: date) -> int:
    return available_counts(store_id, check_in, check_out, room_type_id).get(room_type_id, 0)


# ---------------- Filters ----------------
def matches_filters(room_type: RoomType, amenities=None, name: str | None = None) -> bool:
    """In-memory AND filter over room type attributes."""
    if name and room_type.name != name:
        return False
    if amenities:
        have = set(room_type.amenities or [])
        if not all(a in have for a in amenities):
            return False
    return True


def room_type_availability(store_id: int, check_in: date, check_out: date, *,
                           room_type_id: int | None = None, amenities=None,
                           name: str | None = None, only_available: bool = True) -> list[dict]:
    validate_range(check_in, check_out)
    counts = available_counts(store_id, check_in, check_out, room_type_id)

    q = RoomType.query.filter(RoomType.is_active.is_(True))
    if room_type_id is not None:
        q = q.filter(RoomType.id == room_type_id)

    result = []
    for rt in q.order_by(RoomType.name.asc()).all():
        count = counts.get(rt.id, 0)
        if only_available and count <= 0:
            continue
        if not matches_filters(rt, amenities, name):
            continue
        data = rt.to_dict()
        data["availableCount"] = count
        result.append(data)
    return result


def assignable_rooms(booking: Booking, room_type_id: int | None = None) -> list[Room]:
    """Rooms staff may pick for a booking: AVAILABLE now and free for the booking's dates."""
    rt_id = room_type_id or booking.room_type_id
    return (
        free_rooms_query(booking.store_id, booking.check_in, booking.check_out, rt_id,
                         exclude_booking_id=booking.id)
        .filter(Room.status == ROOM_AVAILABLE)
        .order_by(Room.floor.asc(), Room.room_no.asc())
        .all()
    )
