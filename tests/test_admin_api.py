import pytest

from conftest import day
from models import db, Booking, Room, BOOKING_COMPLETED


@pytest.fixture
def admin(login, world):
    return login("admin@test.io")


# ---------------- Access ----------------
def test_catalog_is_admin_only(client, login, world):
    assert client.get("/admin/stores").status_code == 401
    # customer cookie is not read on /admin paths
    assert login("alice@test.io").get("/admin/stores").status_code == 401
    assert login("staff@test.io").get("/admin/stores").status_code == 403


# ---------------- Stores ----------------
def test_store_crud(admin, world):
    resp = admin.post("/admin/stores", json={"name": "Lakeside", "address": "9 Shore Lane"})
    assert resp.status_code == 201
    store_id = resp.get_json()["store"]["id"]

    assert admin.post("/admin/stores", json={"name": "Lakeside"}).status_code == 409
    assert admin.post("/admin/stores", json={"address": "nowhere"}).status_code == 400
    assert admin.patch(f"/admin/stores/{store_id}", json={"name": "Riverside"}).status_code == 409

    resp = admin.patch(f"/admin/stores/{store_id}", json={"isActive": False})
    assert resp.get_json()["store"]["isActive"] is False

    assert admin.delete(f"/admin/stores/{store_id}").status_code == 200
    assert admin.get(f"/admin/stores/{store_id}").status_code == 404


def test_store_listing_counts(admin, world):
    stores = {s["name"]: s for s in admin.get("/admin/stores").get_json()["stores"]}
    assert stores["Riverside"]["roomCount"] == 3
    assert stores["Riverside"]["staffCount"] == 1
    assert stores["Hilltop"]["roomCount"] == 1


def test_store_with_rooms_cannot_be_deleted(admin, world):
    resp = admin.delete(f"/admin/stores/{world.riverside}")
    assert resp.status_code == 409
    assert "3 room" in resp.get_json()["error"]


def test_store_with_active_staff_cannot_be_deleted(admin, world):
    store_id = admin.post("/admin/stores", json={"name": "Lakeside"}).get_json()["store"]["id"]
    resp = admin.post("/admin/users", json={
        "role": "STAFF", "email": "lake@test.io", "password": "abcdef", "storeId": store_id,
    })
    assert resp.status_code == 201
    staff_id = resp.get_json()["user"]["id"]

    resp = admin.delete(f"/admin/stores/{store_id}")
    assert resp.status_code == 409
    assert "1 active staff" in resp.get_json()["error"]

    # a deactivated assignment no longer holds the store
    assert admin.delete(f"/admin/users/staff/{staff_id}").status_code == 200
    assert admin.delete(f"/admin/stores/{store_id}").status_code == 200


def test_store_with_only_cancelled_booking_cannot_be_deleted(app, admin, world, factory):
    store_id = admin.post("/admin/stores", json={"name": "Lakeside"}).get_json()["store"]["id"]
    with app.app_context():
        factory.booking(world.alice, store_id, world.standard, day(0), day(1), status="CANCELLED")

    resp = admin.delete(f"/admin/stores/{store_id}")
    assert resp.status_code == 409
    assert "1 booking" in resp.get_json()["error"]


# ---------------- Room types ----------------
def test_room_type_validation_and_delete_guard(admin, world):
    assert admin.post("/admin/room-types", json={"name": "Loft"}).status_code == 400
    assert admin.post("/admin/room-types", json={"name": "Loft", "basePrice": "-1"}).status_code == 400
    assert admin.post("/admin/room-types", json={"name": "Standard", "basePrice": "10"}).status_code == 409

    resp = admin.post("/admin/room-types", json={
        "name": "Loft", "basePrice": "420", "amenities": ["wifi", "wifi", "balcony"],
    })
    assert resp.status_code == 201
    loft = resp.get_json()["roomType"]
    assert loft["basePrice"] == "420.00"
    assert loft["capacity"] == 2
    assert loft["amenities"] == ["wifi", "balcony"]

    assert admin.delete(f"/admin/room-types/{world.standard}").status_code == 409
    assert admin.delete(f"/admin/room-types/{loft['id']}").status_code == 200


# ---------------- Rooms ----------------
def test_room_numbers_are_unique_per_store(admin, world):
    body = {"roomNo": "101", "floor": 1, "roomTypeId": world.standard}
    assert admin.post(f"/admin/stores/{world.riverside}/rooms", json=body).status_code == 409

    bad_type = {"roomNo": "150", "floor": 1, "roomTypeId": 9999}
    assert admin.post(f"/admin/stores/{world.riverside}/rooms", json=bad_type).status_code == 400

    resp = admin.post(f"/admin/stores/{world.riverside}/rooms", json={**body, "roomNo": "103", "basePrice": "180"})
    assert resp.status_code == 201
    assert resp.get_json()["room"]["nightlyRate"] == "180.00"


def test_room_number_suggestion(admin, world):
    assert admin.get(f"/admin/stores/{world.riverside}/rooms/suggest?floor=1").get_json()["suggestedRoomNo"] == "103"
    assert admin.get(f"/admin/stores/{world.riverside}/rooms/suggest?floor=3").get_json()["suggestedRoomNo"] == "301"


def test_room_delete_rules(app, admin, world, factory):
    with app.app_context():
        factory.booking(world.alice, world.riverside, world.standard, day(0), day(2), rooms=[world.r101])
        factory.booking(world.alice, world.riverside, world.standard, day(-20), day(-18),
                        status=BOOKING_COMPLETED, rooms=[world.r102])

    held = admin.delete(f"/admin/stores/{world.riverside}/rooms/{world.r101}")
    assert held.status_code == 409

    history = admin.delete(f"/admin/stores/{world.riverside}/rooms/{world.r102}")
    assert history.get_json()["softDeleted"] is True

    clean = admin.delete(f"/admin/stores/{world.riverside}/rooms/{world.r201}")
    assert clean.get_json()["softDeleted"] is False

    with app.app_context():
        assert db.session.get(Room, world.r102).is_active is False
        assert db.session.get(Room, world.r201) is None

    listed = admin.get(f"/admin/stores/{world.riverside}/rooms").get_json()["rooms"]
    assert [r["roomNo"] for r in listed] == ["101"]
    assert listed[0]["activeBookingCount"] == 1


# ---------------- Users ----------------
def test_user_management(admin, world):
    no_store = {"role": "STAFF", "email": "desk2@test.io", "password": "abcdef"}
    assert admin.post("/admin/users", json=no_store).status_code == 400
    assert admin.post("/admin/users", json={**no_store, "email": "staff@test.io", "storeId": world.hilltop}).status_code == 409

    resp = admin.post("/admin/users", json={**no_store, "storeId": world.hilltop})
    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert user["assignedStoreId"] == world.hilltop

    assert admin.delete(f"/admin/users/staff/{user['id']}").status_code == 200
    assert admin.delete(f"/admin/users/admin/{world.admin}").status_code == 409

    users = {u["email"]: u for u in admin.get("/admin/users").get_json()["users"]}
    assert users["desk2@test.io"]["isActive"] is False


# ---------------- Bookings ----------------
def test_desk_booking_with_rooms_and_repricing(admin, world):
    resp = admin.post("/admin/bookings", json={
        "customerId": world.alice, "storeId": world.riverside, "roomTypeId": world.standard,
        "checkIn": day(0).isoformat(), "checkOut": day(2).isoformat(), "roomIds": [world.r101],
    })
    assert resp.status_code == 201
    booking = resp.get_json()["booking"]
    assert booking["status"] == "CONFIRMED"
    assert booking["totalPrice"] == "400.00"
    assert [br["roomId"] for br in booking["bookingRooms"]] == [world.r101]

    resp = admin.patch(f"/admin/bookings/{booking['id']}", json={"status": "CHECKED_IN", "totalPrice": "380"})
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "CHECKED_IN"
    assert resp.get_json()["booking"]["totalPrice"] == "380.00"

    assert admin.patch(f"/admin/bookings/{booking['id']}", json={"status": "COMPLETED"}).status_code == 409
    assert admin.delete(f"/admin/bookings/{booking['id']}").status_code == 409


def test_assign_rooms_endpoint(app, admin, login, world, factory):
    with app.app_context():
        booking_id = factory.booking(world.alice, world.riverside, world.standard, day(0), day(1)).id

    rooms = admin.get(f"/admin/bookings/{booking_id}/available-rooms").get_json()
    assert [r["roomNo"] for r in rooms["rooms"]] == ["101", "102"]
    assert rooms["floors"][0]["floor"] == 1

    assert login("staff@test.io").post(
        f"/admin/bookings/{booking_id}/assign-rooms", json={"roomIds": [world.r101]}
    ).status_code == 403

    resp = admin.post(f"/admin/bookings/{booking_id}/assign-rooms", json={"roomIds": [world.r102]})
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "CONFIRMED"

    with app.app_context():
        assert db.session.get(Booking, booking_id).confirmed_by_admin_id == world.admin


def test_assign_rooms_rejects_non_integer_ids(app, admin, world, factory):
    with app.app_context():
        booking_id = factory.booking(world.alice, world.riverside, world.standard, day(0), day(1)).id

    url = f"/admin/bookings/{booking_id}/assign-rooms"
    assert admin.post(url, json={"roomIds": [True]}).status_code == 400
    assert admin.post(url, json={"roomIds": ["abc"]}).status_code == 400

    with app.app_context():
        booking = db.session.get(Booking, booking_id)
        assert booking.status == "PENDING"
        assert booking.booking_rooms == []


def test_booking_list_filters_and_pages(app, admin, world, factory):
    with app.app_context():
        for n in range(3):
            factory.booking(world.alice, world.riverside, world.standard, day(n), day(n + 1))
        factory.booking(world.bob, world.hilltop, world.standard, day(0), day(1))

    page = admin.get("/admin/bookings?pageSize=2").get_json()
    assert page["total"] == 4
    assert page["totalPages"] == 2
    assert len(page["bookings"]) == 2

    by_store = admin.get(f"/admin/bookings?storeId={world.hilltop}").get_json()
    assert [b["customer"]["name"] for b in by_store["bookings"]] == ["Bob"]

    by_name = admin.get("/admin/bookings?customerName=Ali").get_json()
    assert by_name["total"] == 3

    assert admin.get("/admin/bookings?status=LOST").status_code == 400
