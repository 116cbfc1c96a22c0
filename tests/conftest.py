import itertools
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import create_app
from models import (
    db, Admin, Staff, Customer, Store, RoomType, Room, Booking, BookingRoom, BookingReview,
    ROLE_CUSTOMER, BOOKING_PENDING, BLOCKING_STATUSES, ROOM_OCCUPIED,
)

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret-key",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "SESSION_SECRET": "test-session-secret",
    "SESSION_COOKIE_SECURE": False,
    "LOG_LEVEL": "WARNING",
}

PASSWORD = "secret123"

# far enough ahead that "today" in any timezone is still before it
BASE_DAY = date.today() + timedelta(days=30)


def day(n: int) -> date:
    return BASE_DAY + timedelta(days=n)


def _id(obj):
    return getattr(obj, "id", obj)


class Factory:
    """Row builders for tests. Needs an active app context."""

    def __init__(self):
        self._seq = itertools.count(1)

    def _n(self):
        return next(self._seq)

    def _principal(self, model, email, name, **kw):
        p = model(email=email or f"{model.__name__.lower()}{self._n()}@test.io", name=name, **kw)
        p.set_password(PASSWORD)
        db.session.add(p)
        db.session.commit()
        return p

    def admin(self, email=None, name="Admin"):
        return self._principal(Admin, email, name)

    def staff(self, store=None, email=None, name="Desk"):
        return self._principal(Staff, email, name, assigned_store_id=_id(store) if store else None)

    def customer(self, email=None, name="Guest", phone=None):
        return self._principal(Customer, email, name, phone=phone)

    def store(self, name=None, address="1 Test Road", is_active=True):
        s = Store(name=name or f"Store {self._n()}", address=address, is_active=is_active)
        db.session.add(s)
        db.session.commit()
        return s

    def room_type(self, name=None, price="200.00", capacity=2, amenities=None, is_active=True):
        rt = RoomType(
            name=name or f"Type {self._n()}",
            base_price=Decimal(price),
            capacity=capacity,
            amenities=list(amenities or []),
            is_active=is_active,
        )
        db.session.add(rt)
        db.session.commit()
        return rt

    def room(self, store, room_type, room_no=None, floor=1, **kw):
        r = Room(
            store_id=_id(store),
            room_type_id=_id(room_type),
            room_no=room_no or str(floor * 100 + self._n()),
            floor=floor,
            **kw,
        )
        db.session.add(r)
        db.session.commit()
        return r

    def booking(self, customer, store, room_type, check_in, check_out, status=BOOKING_PENDING, rooms=()):
        """Insert a booking directly; rooms are linked and, for a blocking status, marked OCCUPIED."""
        rt = db.session.get(RoomType, _id(room_type))
        b = Booking(
            customer_id=_id(customer),
            store_id=_id(store),
            room_type_id=rt.id,
            check_in=check_in,
            check_out=check_out,
            status=status,
            total_price=rt.base_price * (check_out - check_in).days,
            created_by_role=ROLE_CUSTOMER,
        )
        for r in rooms:
            room = db.session.get(Room, _id(r))
            b.booking_rooms.append(BookingRoom(room_id=room.id, nightly_rate=room.nightly_rate))
            if status in BLOCKING_STATUSES:
                room.status = ROOM_OCCUPIED
        db.session.add(b)
        db.session.commit()
        return b

    def review(self, booking, rating, comment=None):
        b = db.session.get(Booking, _id(booking))
        r = BookingReview(
            booking_id=b.id, store_id=b.store_id, customer_id=b.customer_id, rating=rating, comment=comment
        )
        b.is_reviewed = True
        db.session.add(r)
        db.session.commit()
        return r


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that call the service layer directly."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory():
    return Factory()


@pytest.fixture
def world(app, factory):
    """Two stores, two room types, a handful of rooms and one account per role. Ids only."""
    with app.app_context():
        riverside = factory.store("Riverside")
        hilltop = factory.store("Hilltop")
        standard = factory.room_type("Standard", price="200.00", amenities=["wifi", "tv"])
        deluxe = factory.room_type("Deluxe", price="350.00", capacity=3, amenities=["wifi", "bathtub"])

        r101 = factory.room(riverside, standard, "101", floor=1)
        r102 = factory.room(riverside, standard, "102", floor=1)
        r201 = factory.room(riverside, deluxe, "201", floor=2)
        h101 = factory.room(hilltop, standard, "101", floor=1)

        admin = factory.admin("admin@test.io")
        staff = factory.staff(riverside, "staff@test.io")
        hill_staff = factory.staff(hilltop, "hill@test.io")
        loose_staff = factory.staff(None, "loose@test.io")
        alice = factory.customer("alice@test.io", "Alice")
        bob = factory.customer("bob@test.io", "Bob")

        return SimpleNamespace(
            riverside=riverside.id, hilltop=hilltop.id,
            standard=standard.id, deluxe=deluxe.id,
            r101=r101.id, r102=r102.id, r201=r201.id, h101=h101.id,
            admin=admin.id, staff=staff.id, hill_staff=hill_staff.id, loose_staff=loose_staff.id,
            alice=alice.id, bob=bob.id,
        )


@pytest.fixture
def login(app):
    """login("alice@test.io") -> a fresh test client carrying that principal's session cookie."""
    def _login(email, password=PASSWORD, scope=None):
        c = app.test_client()
        body = {"email": email, "password": password}
        if scope:
            body["scope"] = scope
        resp = c.post("/auth/login", json=body)
        assert resp.status_code == 200, resp.get_json()
        return c
    return _login
