# utils/ratings.py
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func

from models import db, Booking, BookingReview, BOOKING_CHECKED_OUT, BOOKING_COMPLETED
from utils.errors import Conflict, Forbidden, ValidationFailed

REVIEWABLE_STATUSES = (BOOKING_CHECKED_OUT, BOOKING_COMPLETED)
MAX_COMMENT = 500


def _round1(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def store_ratings(store_ids) -> dict[int, dict]:
    """store_id -> {"avgRating": float | None, "reviewCount": int}; stores without reviews get None."""
    store_ids = list(store_ids)
    result = {sid: {"avgRating": None, "reviewCount": 0} for sid in store_ids}
    if not store_ids:
        return result
    rows = (
        db.session.query(BookingReview.store_id, func.avg(BookingReview.rating), func.count(BookingReview.id))
        .filter(BookingReview.store_id.in_(store_ids))
        .group_by(BookingReview.store_id)
        .all()
    )
    for sid, avg, count in rows:
        result[sid] = {"avgRating": _round1(avg) if count else None, "reviewCount": count}
    return result


def store_rating(store_id: int) -> dict:
    return store_ratings([store_id])[store_id]


def _parse_rating(value) -> int:
    if isinstance(value, bool):
        raise ValidationFailed("Rating must be an integer between 1 and 5.")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailed("Rating must be an integer between 1 and 5.")
    return value


def submit_review(customer, booking: Booking, rating, comment=None) -> BookingReview:
    rating = _parse_rating(rating)
    comment = (comment or "").strip() or None
    if comment and len(comment) > MAX_COMMENT:
        raise ValidationFailed(f"Comment must be at most {MAX_COMMENT} characters.")

    if booking.customer_id != customer.id:
        raise Forbidden("You cannot review this booking.")
    if booking.status not in REVIEWABLE_STATUSES:
        raise ValidationFailed("Only checked-out bookings can be reviewed.")
    if booking.is_reviewed:
        raise Conflict("This booking has already been reviewed.")

    review = BookingReview(
        booking_id=booking.id,
        store_id=booking.store_id,
        customer_id=customer.id,
        rating=rating,
        comment=comment,
    )
    booking.is_reviewed = True
    try:
        db.session.add(review)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Review #%s (%s stars) for booking #%s", review.id, rating, booking.id)
    return review
