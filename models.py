from datetime import datetime
from decimal import Decimal
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

ROLE_ADMIN = "ADMIN"
ROLE_STAFF = "STAFF"
ROLE_CUSTOMER = "CUSTOMER"

ROOM_AVAILABLE = "AVAILABLE"
ROOM_OCCUPIED = "OCCUPIED"
ROOM_CLEANING = "CLEANING"
ROOM_OUT_OF_SERVICE = "OUT_OF_SERVICE"
ROOM_STATUSES = (ROOM_AVAILABLE, ROOM_OCCUPIED, ROOM_CLEANING, ROOM_OUT_OF_SERVICE)

BOOKING_PENDING = "PENDING"
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_CHECKED_IN = "CHECKED_IN"
BOOKING_CHECKED_OUT = "CHECKED_OUT"
BOOKING_COMPLETED = "COMPLETED"
BOOKING_CANCELLED = "CANCELLED"
BOOKING_NO_SHOW = "NO_SHOW"
BOOKING_STATUSES = (
    BOOKING_PENDING, BOOKING_CONFIRMED, BOOKING_CHECKED_IN, BOOKING_CHECKED_OUT,
    BOOKING_COMPLETED, BOOKING_CANCELLED, BOOKING_NO_SHOW,
)
# A booking in one of these holds its rooms for its date range.
BLOCKING_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED, BOOKING_CHECKED_IN)


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return str(value) if value is not None else None


# ---------------- Principals ----------------
class PrincipalMixin(UserMixin):
    """Shared behaviour of the three principal tables (Admin | Staff | Customer)."""
    role = None

    def get_id(self):
        return f"{self.role}:{self.id}"

    def set_password(self, raw): self.password_hash = generate_password_hash(raw)
    def check_password(self, raw): return check_password_hash(self.password_hash, raw)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "isActive": bool(self.is_active),
            "createdAt": _iso(self.created_at),
        }


class Admin(PrincipalMixin, db.Model):
    role = ROLE_ADMIN

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255))
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Staff(PrincipalMixin, db.Model):
    role = ROLE_STAFF

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255))
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    assigned_store_id = db.Column(db.Integer, db.ForeignKey("store.id"))

    assigned_store = db.relationship("Store", backref="assigned_staff")

    def to_dict(self):
        data = super().to_dict()
        data["assignedStoreId"] = self.assigned_store_id
        data["store"] = {"id": self.assigned_store.id, "name": self.assigned_store.name} if self.assigned_store else None
        return data


class Customer(PrincipalMixin, db.Model):
    role = ROLE_CUSTOMER

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        data = super().to_dict()
        data["phone"] = self.phone
        return data


PRINCIPAL_MODELS = {ROLE_ADMIN: Admin, ROLE_STAFF: Staff, ROLE_CUSTOMER: Customer}
# Login probes tables in this order; email is only unique per table.
LOGIN_ORDER = (ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER)


def load_principal(role, user_id):
    """Resolve a session payload to an active principal, or None."""
    model = PRINCIPAL_MODELS.get(role)
    if model is None:
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    principal = db.session.get(model, user_id)
    if principal is None or not principal.is_active:
        return None
    return principal


def find_principal_by_email(email, roles=LOGIN_ORDER):
    for role in LOGIN_ORDER:
        if role not in roles:
            continue
        model = PRINCIPAL_MODELS[role]
        principal = model.query.filter_by(email=email, is_active=True).first()
        if principal:
            return principal
    return None


# ---------------- Catalog ----------------
class Store(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    address = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "isActive": bool(self.is_active),
            "createdAt": _iso(self.created_at),
        }


class RoomType(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=2)
    amenities = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "basePrice": _money(self.base_price),
            "capacity": self.capacity,
            "amenities": list(self.amenities or []),
            "isActive": bool(self.is_active),
        }


class Room(db.Model):
    __table_args__ = (db.UniqueConstraint("store_id", "room_no", name="uq_room_store_room_no"),)

    id = db.Column(db.Integer, primary_key=True)
    room_no = db.Column(db.String(20), nullable=False)
    floor = db.Column(db.Integer, nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("store.id"), nullable=False, index=True)
    room_type_id = db.Column(db.Integer, db.ForeignKey("room_type.id"), nullable=False, index=True)
    base_price = db.Column(db.Numeric(10, 2))  # overrides RoomType.base_price when set
    capacity = db.Column(db.Integer)           # overrides RoomType.capacity when set
    status = db.Column(db.String(20), nullable=False, default=ROOM_AVAILABLE)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    store = db.relationship("Store", backref="rooms")
    room_type = db.relationship("RoomType", backref="rooms")

    @property
    def nightly_rate(self) -> Decimal:
        return self.base_price if self.base_price is not None else self.room_type.base_price

    def to_dict(self, with_type=True):
        data = {
            "id": self.id,
            "roomNo": self.room_no,
            "floor": self.floor,
            "storeId": self.store_id,
            "roomTypeId": self.room_type_id,
            "basePrice": _money(self.base_price),
            "capacity": self.capacity,
            "nightlyRate": _money(self.nightly_rate),
            "status": self.status,
            "isActive": bool(self.is_active),
        }
        if with_type:
            data["roomType"] = {"id": self.room_type.id, "name": self.room_type.name}
        return data


# ---------------- Bookings ----------------
class Booking(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(20), nullable=False, default=BOOKING_PENDING, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("store.id"), nullable=False, index=True)
    room_type_id = db.Column(db.Integer, db.ForeignKey("room_type.id"), nullable=False)
    check_in = db.Column(db.Date, nullable=False)
    check_out = db.Column(db.Date, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    created_by_role = db.Column(db.String(20), nullable=False, default=ROLE_CUSTOMER)
    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admin.id"))
    created_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"))
    confirmed_by_admin_id = db.Column(db.Integer, db.ForeignKey("admin.id"))
    confirmed_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"))

    cancel_reason = db.Column(db.String(255))
    cancelled_at = db.Column(db.DateTime)
    checked_in_at = db.Column(db.DateTime)
    checked_out_at = db.Column(db.DateTime)
    is_reviewed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer", backref="bookings")
    store = db.relationship("Store", backref="bookings")
    room_type = db.relationship("RoomType", backref="bookings")
    booking_rooms = db.relationship("BookingRoom", backref="booking", cascade="all, delete-orphan")
    reviews = db.relationship("BookingReview", backref="booking", cascade="all, delete-orphan")

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def rooms(self):
        return [br.room for br in self.booking_rooms]

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status,
            "customerId": self.customer_id,
            "storeId": self.store_id,
            "roomTypeId": self.room_type_id,
            "checkIn": _iso(self.check_in),
            "checkOut": _iso(self.check_out),
            "nights": self.nights,
            "totalPrice": _money(self.total_price),
            "createdByRole": self.created_by_role,
            "createdByAdminId": self.created_by_admin_id,
            "createdByStaffId": self.created_by_staff_id,
            "confirmedByAdminId": self.confirmed_by_admin_id,
            "confirmedByStaffId": self.confirmed_by_staff_id,
            "cancelReason": self.cancel_reason,
            "cancelledAt": _iso(self.cancelled_at),
            "checkedInAt": _iso(self.checked_in_at),
            "checkedOutAt": _iso(self.checked_out_at),
            "isReviewed": bool(self.is_reviewed),
            "createdAt": _iso(self.created_at),
            "customer": {
                "name": self.customer.name,
                "email": self.customer.email,
                "phone": self.customer.phone,
            } if self.customer else None,
            "store": {"id": self.store.id, "name": self.store.name} if self.store else None,
            "roomType": {"id": self.room_type.id, "name": self.room_type.name} if self.room_type else None,
            "bookingRooms": [br.to_dict() for br in self.booking_rooms],
        }


class BookingRoom(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey("room.id"), nullable=False, index=True)
    nightly_rate = db.Column(db.Numeric(10, 2), nullable=False)  # locked at assignment
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    room = db.relationship("Room", backref="booking_rooms")

    def to_dict(self):
        return {
            "id": self.id,
            "roomId": self.room_id,
            "nightlyRate": _money(self.nightly_rate),
            "room": {"roomNo": self.room.room_no, "floor": self.room.floor} if self.room else None,
        }


class BookingReview(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("store.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    customer = db.relationship("Customer")
    store = db.relationship("Store", backref="reviews")
