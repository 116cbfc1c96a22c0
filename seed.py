from decimal import Decimal

from models import db, Admin, Staff, Customer, Store, RoomType, Room

DEMO_STORES = [
    ("Riverside Hotel", "88 Binjiang Road"),
    ("Old Town Inn", "12 Wenmiao Street"),
]

DEMO_ROOM_TYPES = [
    # name, base price, capacity, amenities
    ("Standard Queen", "199.00", 2, ["wifi", "tv"]),
    ("Deluxe Twin", "299.00", 2, ["wifi", "tv", "bathtub"]),
    ("Family Suite", "459.00", 4, ["wifi", "tv", "bathtub", "kitchen"]),
]


def create_admin(email, name, password):
    """Upsert an admin by email. Returns (admin, created)."""
    email = (email or "").strip().lower()
    admin = Admin.query.filter_by(email=email).first()
    created = admin is None
    if created:
        admin = Admin(email=email)
        db.session.add(admin)
    admin.name = (name or "").strip() or admin.name or "Administrator"
    admin.is_active = True
    admin.set_password(password)
    db.session.commit()
    return admin, created


def _get_or_create_store(name, address):
    store = Store.query.filter_by(name=name).first()
    if not store:
        store = Store(name=name, address=address)
        db.session.add(store)
        db.session.flush()
    return store


def _get_or_create_room_type(name, price, capacity, amenities):
    rt = RoomType.query.filter_by(name=name).first()
    if not rt:
        rt = RoomType(name=name, base_price=Decimal(price), capacity=capacity, amenities=amenities)
        db.session.add(rt)
        db.session.flush()
    return rt


def seed_demo_data():
    """Idempotent demo data: two stores, three room types, two floors of rooms each, one account per role."""
    stores = [_get_or_create_store(name, address) for name, address in DEMO_STORES]
    room_types = [_get_or_create_room_type(*row) for row in DEMO_ROOM_TYPES]

    for store in stores:
        for floor in (1, 2):
            for i, rt in enumerate(room_types, start=1):
                room_no = str(floor * 100 + i)
                if not Room.query.filter_by(store_id=store.id, room_no=room_no).first():
                    db.session.add(Room(store_id=store.id, room_no=room_no, floor=floor, room_type_id=rt.id))

    if not Admin.query.filter_by(email="admin@example.com").first():
        u = Admin(email="admin@example.com", name="Admin"); u.set_password("admin123"); db.session.add(u)
    if not Staff.query.filter_by(email="staff@example.com").first():
        u = Staff(email="staff@example.com", name="Front Desk", assigned_store_id=stores[0].id)
        u.set_password("staff123"); db.session.add(u)
    if not Customer.query.filter_by(email="guest@example.com").first():
        u = Customer(email="guest@example.com", name="Sample Guest", phone="13800000000")
        u.set_password("guest123"); db.session.add(u)
    db.session.commit()

    return {
        "stores": len(stores),
        "room_types": len(room_types),
        "rooms": Room.query.filter(Room.store_id.in_([s.id for s in stores])).count(),
    }
