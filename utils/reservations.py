# utils/reservations.py
from datetime import datetime
from decimal import Decimal, InvalidOperation

import pytz
from flask import current_app

from models import (
    db, Booking, Customer, RoomType, Store,
    ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER,
    BOOKING_PENDING, BOOKING_CONFIRMED, BOOKING_CANCELLED, BOOKING_COMPLETED, BOOKING_STATUSES,
)
from utils.availability import available_count, parse_day, validate_range
from utils.errors import Conflict, NotFound, ValidationFailed
from utils.lifecycle import release_rooms, lock_booking_rooms, stamp_confirmer, attach_rooms

DELETABLE_STATUSES = (BOOKING_PENDING, BOOKING_CANCELLED, BOOKING_COMPLETED)


def today_local():
    """Calendar day in the hotel's timezone."""
    tz = pytz.timezone(current_app.config.get("TIMEZONE", "Asia/Shanghai"))
    return datetime.now(tz).date()


def parse_money(value, field: str = "price") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"Invalid {field}: {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationFailed(f"Invalid {field}: {value!r}")
    return amount.quantize(Decimal("0.01"))


def _active_store(store_id) -> Store:
    store = db.session.get(Store, store_id) if store_id else None
    if store is None:
        raise NotFound("Store not found.")
    if not store.is_active:
        raise ValidationFailed("This store is not accepting bookings.")
    return store


def create_customer_booking(customer: Customer, store_id, room_type_id, check_in, check_out) -> Booking:
    """Self-service booking: PENDING, no room yet, price fixed at creation."""
    nights = validate_range(check_in, check_out)
    if check_in < today_local():
        raise ValidationFailed("Check-in date cannot be earlier than today.")

    store = _active_store(store_id)
    room_type = db.session.get(RoomType, room_type_id) if room_type_id else None
    if room_type is None:
        raise NotFound("Room type not found.")
    if not room_type.is_active:
        raise ValidationFailed("This room type is not available for booking.")

    if available_count(store.id, room_type.id, check_in, check_out) <= 0:
        raise Conflict("No rooms of this type are available for the selected dates.")

    booking = Booking(
        customer_id=customer.id,
        store_id=store.id,
        room_type_id=room_type.id,
        check_in=check_in,
        check_out=check_out,
        total_price=room_type.base_price * nights,
        status=BOOKING_PENDING,
        created_by_role=ROLE_CUSTOMER,
    )
    db.session.add(booking)
    db.session.commit()
    current_app.logger.info(
        "Booking #%s created by customer %s (%s nights at store %s)", booking.id, customer.id, nights, store.id
    )
    return booking


def create_desk_booking(actor, customer_id, store_id, room_type_id, check_in, check_out,
                        room_ids=None, total_price=None) -> Booking:
    """Back-office booking: starts CONFIRMED, rooms (if any) assigned in the same transaction."""
    nights = validate_range(check_in, check_out)

    customer = db.session.get(Customer, customer_id) if customer_id else None
    if customer is None:
        raise NotFound("Customer not found.")
    store = _active_store(store_id)
    room_type = db.session.get(RoomType, room_type_id) if room_type_id else None
    if room_type is None:
        raise NotFound("Room type not found.")

    booking = Booking(
        customer_id=customer.id,
        store_id=store.id,
        room_type_id=room_type.id,
        check_in=check_in,
        check_out=check_out,
        status=BOOKING_CONFIRMED,
        created_by_role=actor.role,
        total_price=Decimal("0.00"),
    )
    if actor.role == ROLE_ADMIN:
        booking.created_by_admin_id = actor.id
    elif actor.role == ROLE_STAFF:
        booking.created_by_staff_id = actor.id
    stamp_confirmer(booking, actor)

    try:
        db.session.add(booking)
        db.session.flush()

        if room_ids:
            created = attach_rooms(booking, room_ids)
            rate = sum((br.nightly_rate for br in created), Decimal("0.00"))
        else:
            rate = room_type.base_price

        if total_price is not None and total_price != "":
            booking.total_price = parse_money(total_price, "totalPrice")
        else:
            booking.total_price = rate * nights
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Booking #%s created by %s %s", booking.id, actor.role, actor.id)
    return booking


def reprice(booking: Booking, total_price) -> Booking:
    booking.total_price = parse_money(total_price, "totalPrice")
    return booking


def delete_booking(booking: Booking) -> None:
    """Admin clean-up of pending/cancelled/completed records; held rooms go back to AVAILABLE."""
    if booking.status not in DELETABLE_STATUSES:
        raise Conflict("Only pending, cancelled or completed bookings can be deleted.")
    booking_id = booking.id
    try:
        release_rooms(lock_booking_rooms(booking))
        db.session.delete(booking)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Booking #%s deleted", booking_id)


def filtered_bookings(args, store_id=None):
    """Bookings query narrowed by the list filters shared by the back office and the desk."""
    q = Booking.query
    if store_id is not None:
        q = q.filter(Booking.store_id == store_id)

    status = args.get("status")
    if status:
        if status not in BOOKING_STATUSES:
            raise ValidationFailed(f"Unknown booking status: {status!r}")
        q = q.filter(Booking.status == status)
    room_type_id = args.get("roomTypeId")
    if room_type_id:
        try:
            q = q.filter(Booking.room_type_id == int(room_type_id))
        except (TypeError, ValueError):
            raise ValidationFailed(f"Invalid roomTypeId: {room_type_id!r}") from None
    if args.get("checkInDate"):
        q = q.filter(Booking.check_in >= parse_day(args.get("checkInDate"), "checkInDate"))
    if args.get("checkOutDate"):
        q = q.filter(Booking.check_out <= parse_day(args.get("checkOutDate"), "checkOutDate"))
    name = (args.get("customerName") or "").strip()
    if name:
        q = q.join(Customer, Customer.id == Booking.customer_id).filter(Customer.name.contains(name))
    if args.get("createdByRole"):
        q = q.filter(Booking.created_by_role == args.get("createdByRole"))
    return q.order_by(Booking.created_at.desc(), Booking.id.desc())
