# blueprints/admin.py
from flask import Blueprint, current_app, request
from flask_login import current_user
from sqlalchemy import func

from models import (
    db, Admin, Staff, Store, RoomType, Room, Booking, BookingRoom,
    ROLE_ADMIN, ROLE_STAFF, ROOM_STATUSES, BLOCKING_STATUSES,
)
from utils.errors import Conflict, NotFound, ValidationFailed
from utils.http import json_body, ok, optional_int, required_int
from utils.reservations import parse_money
from utils.role_gate import admin_only

bp = Blueprint("admin", __name__, url_prefix="/admin")

BACK_OFFICE_MODELS = {ROLE_ADMIN: Admin, ROLE_STAFF: Staff}


# ---------- Helpers ----------
def _text(body, key, required=False, label=None):
    value = (body.get(key) or "").strip() if isinstance(body.get(key), str) else body.get(key)
    if required and not value:
        raise ValidationFailed(f"{label or key} is required.")
    return value or None


def _bool(body, key, default=None):
    if key not in body:
        return default
    value = body.get(key)
    if not isinstance(value, bool):
        raise ValidationFailed(f"{key} must be true or false.")
    return value


def _counts(column, query, ids):
    if not ids:
        return {}
    return dict(query.filter(column.in_(ids)).with_entities(column, func.count()).group_by(column).all())


# ========== STORES ==========
def _store_payload(stores):
    ids = [s.id for s in stores]
    rooms = _counts(Room.store_id, Room.query.filter(Room.is_active.is_(True)), ids)
    staff = _counts(Staff.assigned_store_id, Staff.query.filter(Staff.is_active.is_(True)), ids)
    active = _counts(Booking.store_id, Booking.query.filter(Booking.status.in_(BLOCKING_STATUSES)), ids)
    out = []
    for s in stores:
        data = s.to_dict()
        data["roomCount"] = rooms.get(s.id, 0)
        data["staffCount"] = staff.get(s.id, 0)
        data["activeBookingCount"] = active.get(s.id, 0)
        out.append(data)
    return out


@bp.get("/stores")
@admin_only()
def stores_index():
    stores = Store.query.order_by(Store.name.asc()).all()
    return ok(stores=_store_payload(stores))


@bp.post("/stores")
@admin_only()
def stores_create():
    body = json_body()
    name = _text(body, "name", required=True, label="Store name")
    if Store.query.filter_by(name=name).first():
        raise Conflict("A store with this name already exists.")

    store = Store(name=name, address=_text(body, "address"), is_active=_bool(body, "isActive", True))
    db.session.add(store)
    db.session.commit()
    current_app.logger.info("Store #%s created", store.id)
    return ok(201, store=store.to_dict())


@bp.get("/stores/<int:store_id>")
@admin_only()
def stores_detail(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    return ok(store=_store_payload([store])[0])


@bp.patch("/stores/<int:store_id>")
@admin_only()
def stores_update(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    body = json_body()

    if "name" in body:
        name = _text(body, "name", required=True, label="Store name")
        clash = Store.query.filter(Store.name == name, Store.id != store.id).first()
        if clash:
            raise Conflict("A store with this name already exists.")
        store.name = name
    if "address" in body:
        store.address = _text(body, "address")
    if "isActive" in body:
        store.is_active = _bool(body, "isActive")

    db.session.commit()
    return ok(store=store.to_dict())


@bp.delete("/stores/<int:store_id>")
@admin_only()
def stores_delete(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")

    room_count = Room.query.filter_by(store_id=store.id).count()
    if room_count:
        raise Conflict(f"Store still has {room_count} room(s); remove them first.")
    staff_count = Staff.query.filter_by(assigned_store_id=store.id, is_active=True).count()
    if staff_count:
        raise Conflict(f"Store still has {staff_count} active staff member(s).")
    booking_count = Booking.query.filter_by(store_id=store.id).count()
    if booking_count:
        raise Conflict(f"Store has {booking_count} booking(s) on record.")

    db.session.delete(store)
    db.session.commit()
    current_app.logger.info("Store #%s deleted", store_id)
    return ok()


# ========== ROOM TYPES ==========
def _amenities(value):
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(a, str) for a in value):
        raise ValidationFailed("amenities must be a list of strings.")
    seen = []
    for a in (a.strip() for a in value):
        if a and a not in seen:
            seen.append(a)
    return seen


def _capacity(value, default=None):
    cap = optional_int(value, "capacity")
    if cap is None:
        return default
    if cap < 1:
        raise ValidationFailed("capacity must be at least 1.")
    return cap


@bp.get("/room-types")
@admin_only()
def room_types_index():
    rows = RoomType.query.order_by(RoomType.name.asc()).all()
    counts = _counts(Room.room_type_id, Room.query.filter(Room.is_active.is_(True)), [rt.id for rt in rows])
    items = []
    for rt in rows:
        data = rt.to_dict()
        data["roomCount"] = counts.get(rt.id, 0)
        items.append(data)
    return ok(roomTypes=items)


@bp.post("/room-types")
@admin_only()
def room_types_create():
    body = json_body()
    name = _text(body, "name", required=True, label="Room type name")
    if body.get("basePrice") in (None, ""):
        raise ValidationFailed("basePrice is required.")
    if RoomType.query.filter_by(name=name).first():
        raise Conflict("A room type with this name already exists.")

    rt = RoomType(
        name=name,
        description=_text(body, "description"),
        base_price=parse_money(body["basePrice"], "basePrice"),
        capacity=_capacity(body.get("capacity"), default=2),
        amenities=_amenities(body.get("amenities")),
        is_active=_bool(body, "isActive", True),
    )
    db.session.add(rt)
    db.session.commit()
    current_app.logger.info("Room type #%s created", rt.id)
    return ok(201, roomType=rt.to_dict())


@bp.get("/room-types/<int:rt_id>")
@admin_only()
def room_types_detail(rt_id):
    rt = db.get_or_404(RoomType, rt_id, description="Room type not found.")
    return ok(roomType=rt.to_dict())


@bp.patch("/room-types/<int:rt_id>")
@admin_only()
def room_types_update(rt_id):
    rt = db.get_or_404(RoomType, rt_id, description="Room type not found.")
    body = json_body()

    if "name" in body:
        name = _text(body, "name", required=True, label="Room type name")
        if RoomType.query.filter(RoomType.name == name, RoomType.id != rt.id).first():
            raise Conflict("A room type with this name already exists.")
        rt.name = name
    if "description" in body:
        rt.description = _text(body, "description")
    if "basePrice" in body:
        rt.base_price = parse_money(body["basePrice"], "basePrice")
    if "capacity" in body:
        rt.capacity = _capacity(body["capacity"], default=rt.capacity)
    if "amenities" in body:
        rt.amenities = _amenities(body["amenities"])
    if "isActive" in body:
        rt.is_active = _bool(body, "isActive")

    # existing bookings keep the price they were created with
    db.session.commit()
    return ok(roomType=rt.to_dict())


@bp.delete("/room-types/<int:rt_id>")
@admin_only()
def room_types_delete(rt_id):
    rt = db.get_or_404(RoomType, rt_id, description="Room type not found.")
    room_count = Room.query.filter_by(room_type_id=rt.id).count()
    if room_count:
        raise Conflict(f"Room type is used by {room_count} room(s).")
    booking_count = Booking.query.filter_by(room_type_id=rt.id).count()
    if booking_count:
        raise Conflict(f"Room type is referenced by {booking_count} booking(s).")

    db.session.delete(rt)
    db.session.commit()
    return ok()


# ========== ROOMS (per store) ==========
def _store_room(store_id, room_id) -> Room:
    room = Room.query.filter_by(id=room_id, store_id=store_id).first()
    if room is None:
        raise NotFound("Room not found.")
    return room


def _active_booking_counts(room_ids):
    if not room_ids:
        return {}
    rows = (
        db.session.query(BookingRoom.room_id, func.count(BookingRoom.id))
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .filter(BookingRoom.room_id.in_(room_ids), Booking.status.in_(BLOCKING_STATUSES))
        .group_by(BookingRoom.room_id)
        .all()
    )
    return dict(rows)


def _room_type_or_400(value) -> RoomType:
    rt = db.session.get(RoomType, required_int(value, "roomTypeId"))
    if rt is None:
        raise ValidationFailed("Room type does not exist.")
    return rt


@bp.get("/stores/<int:store_id>/rooms")
@admin_only()
def rooms_index(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    rooms = (
        Room.query.filter(Room.store_id == store.id, Room.is_active.is_(True))
        .order_by(Room.floor.asc(), Room.room_no.asc())
        .all()
    )
    counts = _active_booking_counts([r.id for r in rooms])
    items = []
    for r in rooms:
        data = r.to_dict()
        data["activeBookingCount"] = counts.get(r.id, 0)
        items.append(data)
    return ok(store=store.to_dict(), rooms=items)


@bp.get("/stores/<int:store_id>/rooms/suggest")
@admin_only()
def rooms_suggest(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    floor = optional_int(request.args.get("floor"), "floor") or 1

    taken = set()
    for (room_no,) in Room.query.filter_by(store_id=store.id, floor=floor, is_active=True).with_entities(Room.room_no):
        if room_no.isdigit():
            taken.add(int(room_no))

    suggested = floor * 100 + 1
    while suggested in taken:
        suggested += 1
    return ok(suggestedRoomNo=str(suggested), existingRoomsCount=len(taken), floor=floor)


@bp.post("/stores/<int:store_id>/rooms")
@admin_only()
def rooms_create(store_id):
    store = db.get_or_404(Store, store_id, description="Store not found.")
    body = json_body()

    room_no = _text(body, "roomNo", required=True, label="Room number")
    room_no = str(room_no)
    floor = required_int(body.get("floor"), "floor")
    rt = _room_type_or_400(body.get("roomTypeId"))
    if Room.query.filter_by(store_id=store.id, room_no=room_no).first():
        raise Conflict(f"Room {room_no} already exists in this store.")

    base_price = body.get("basePrice")
    room = Room(
        store_id=store.id,
        room_no=room_no,
        floor=floor,
        room_type_id=rt.id,
        base_price=parse_money(base_price, "basePrice") if base_price not in (None, "") else None,
        capacity=_capacity(body.get("capacity")),
    )
    db.session.add(room)
    db.session.commit()
    current_app.logger.info("Room %s created in store #%s", room.room_no, store.id)
    return ok(201, room=room.to_dict())


@bp.get("/stores/<int:store_id>/rooms/<int:room_id>")
@admin_only()
def rooms_detail(store_id, room_id):
    room = _store_room(store_id, room_id)
    return ok(room=room.to_dict())


@bp.patch("/stores/<int:store_id>/rooms/<int:room_id>")
@admin_only()
def rooms_update(store_id, room_id):
    room = _store_room(store_id, room_id)
    body = json_body()

    if "roomNo" in body:
        room_no = str(_text(body, "roomNo", required=True, label="Room number"))
        clash = Room.query.filter(Room.store_id == store_id, Room.room_no == room_no, Room.id != room.id).first()
        if clash:
            raise Conflict(f"Room {room_no} already exists in this store.")
        room.room_no = room_no
    if "floor" in body:
        room.floor = required_int(body["floor"], "floor")
    if "roomTypeId" in body:
        room.room_type_id = _room_type_or_400(body["roomTypeId"]).id
    if "basePrice" in body:
        bp_value = body["basePrice"]
        room.base_price = parse_money(bp_value, "basePrice") if bp_value not in (None, "") else None
    if "capacity" in body:
        room.capacity = _capacity(body["capacity"])
    if "status" in body:
        if body["status"] not in ROOM_STATUSES:
            raise ValidationFailed(f"Unknown room status: {body['status']!r}")
        room.status = body["status"]
    if "isActive" in body:
        room.is_active = _bool(body, "isActive")

    db.session.commit()
    return ok(room=room.to_dict())


@bp.delete("/stores/<int:store_id>/rooms/<int:room_id>")
@admin_only()
def rooms_delete(store_id, room_id):
    room = _store_room(store_id, room_id)

    if _active_booking_counts([room.id]).get(room.id):
        raise Conflict("Room is held by an active booking and cannot be deleted.")

    if BookingRoom.query.filter_by(room_id=room.id).first():
        # history must keep pointing at the room
        room.is_active = False
        db.session.commit()
        current_app.logger.info("Room #%s deactivated", room.id)
        return ok(softDeleted=True)

    db.session.delete(room)
    db.session.commit()
    current_app.logger.info("Room #%s deleted", room_id)
    return ok(softDeleted=False)


# ========== USERS (Admin / Staff) ==========
def _user_model(role):
    model = BACK_OFFICE_MODELS.get((role or "").upper())
    if model is None:
        raise ValidationFailed("role must be ADMIN or STAFF.")
    return model


def _email_taken(email, exclude=None):
    for model in BACK_OFFICE_MODELS.values():
        row = model.query.filter_by(email=email).first()
        if row is not None and row is not exclude:
            return True
    return False


def _assignable_store(value):
    store = db.session.get(Store, required_int(value, "storeId"))
    if store is None:
        raise ValidationFailed("Store does not exist.")
    return store


@bp.get("/users")
@admin_only()
def users_index():
    admins = Admin.query.order_by(Admin.created_at.desc()).all()
    staff = Staff.query.order_by(Staff.created_at.desc()).all()
    return ok(users=[u.to_dict() for u in admins + staff])


@bp.post("/users")
@admin_only()
def users_create():
    body = json_body()
    model = _user_model(body.get("role"))
    email = (_text(body, "email", required=True, label="Email") or "").lower()
    password = body.get("password") or ""
    if len(password) < 6:
        raise ValidationFailed("Password must be at least 6 characters.")
    if _email_taken(email):
        raise Conflict("Email already in use.")

    user = model(email=email, name=_text(body, "name"))
    if model is Staff:
        user.assigned_store_id = _assignable_store(body.get("storeId")).id
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("%s %s created by admin %s", user.role, user.id, current_user.id)
    return ok(201, user=user.to_dict())


@bp.patch("/users/<role>/<int:user_id>")
@admin_only()
def users_update(role, user_id):
    model = _user_model(role)
    user = db.get_or_404(model, user_id, description="User not found.")
    body = json_body()

    if "email" in body:
        email = (_text(body, "email", required=True, label="Email") or "").lower()
        if _email_taken(email, exclude=user):
            raise Conflict("Email already in use.")
        user.email = email
    if body.get("password"):
        if len(body["password"]) < 6:
            raise ValidationFailed("Password must be at least 6 characters.")
        user.set_password(body["password"])
    if "name" in body:
        user.name = _text(body, "name")
    if "isActive" in body:
        user.is_active = _bool(body, "isActive")
    if model is Staff and "storeId" in body:
        user.assigned_store_id = _assignable_store(body["storeId"]).id if body["storeId"] is not None else None

    db.session.commit()
    return ok(user=user.to_dict())


@bp.delete("/users/<role>/<int:user_id>")
@admin_only()
def users_delete(role, user_id):
    model = _user_model(role)
    user = db.get_or_404(model, user_id, description="User not found.")
    if model is Admin and user.id == current_user.id:
        raise Conflict("You cannot delete your own account.")

    # deactivate; bookings keep their created/confirmed-by references
    user.is_active = False
    db.session.commit()
    current_app.logger.info("%s %s deactivated by admin %s", user.role, user.id, current_user.id)
    return ok()
