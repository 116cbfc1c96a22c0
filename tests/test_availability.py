from datetime import date, datetime

import pytest

from conftest import day
from models import BOOKING_CANCELLED, BOOKING_CHECKED_OUT, BOOKING_CONFIRMED, ROOM_OUT_OF_SERVICE
from utils.availability import (
    available_count, assignable_rooms, is_room_free, parse_day, room_type_availability, validate_range,
)
from utils.errors import ValidationFailed


@pytest.fixture
def hotel(ctx, factory):
    store = factory.store("Harbour")
    std = factory.room_type("Standard", amenities=["wifi", "tv"])
    suite = factory.room_type("Suite", price="500.00", amenities=["wifi", "bathtub"])
    rooms = [factory.room(store, std, "101"), factory.room(store, std, "102")]
    factory.room(store, suite, "301", floor=3)
    return store, std, suite, rooms, factory.customer()


def test_back_to_back_stays_do_not_overlap(hotel, factory):
    store, std, _, rooms, guest = hotel
    factory.booking(guest, store, std, day(0), day(3), status=BOOKING_CONFIRMED, rooms=[rooms[0]])

    assert is_room_free(rooms[0], day(3), day(5))
    assert is_room_free(rooms[0], day(-2), day(0))
    assert not is_room_free(rooms[0], day(2), day(4))
    assert not is_room_free(rooms[0], day(1), day(2))


def test_overlapping_assignment_reduces_count(hotel, factory):
    store, std, _, rooms, guest = hotel
    factory.booking(guest, store, std, day(10), day(12), status=BOOKING_CONFIRMED, rooms=[rooms[0]])

    assert available_count(store.id, std.id, day(11), day(13)) == 1
    assert available_count(store.id, std.id, day(12), day(14)) == 2


def test_released_statuses_do_not_block(hotel, factory):
    store, std, _, rooms, guest = hotel
    factory.booking(guest, store, std, day(0), day(2), status=BOOKING_CANCELLED, rooms=[rooms[0]])
    factory.booking(guest, store, std, day(0), day(2), status=BOOKING_CHECKED_OUT, rooms=[rooms[1]])

    assert available_count(store.id, std.id, day(0), day(2)) == 2


def test_out_of_service_and_inactive_rooms_are_never_offered(hotel, factory):
    store, std, _, rooms, _ = hotel
    rooms[0].status = ROOM_OUT_OF_SERVICE
    rooms[1].is_active = False

    assert available_count(store.id, std.id, day(0), day(1)) == 0
    assert not is_room_free(rooms[0], day(0), day(1))


def test_room_type_listing_filters(hotel):
    store, std, suite, _, _ = hotel

    all_types = room_type_availability(store.id, day(0), day(2))
    assert [(t["name"], t["availableCount"]) for t in all_types] == [("Standard", 2), ("Suite", 1)]

    bath = room_type_availability(store.id, day(0), day(2), amenities=["bathtub"])
    assert [t["id"] for t in bath] == [suite.id]

    both = room_type_availability(store.id, day(0), day(2), amenities=["wifi", "tv"], name="Standard")
    assert [t["id"] for t in both] == [std.id]

    assert room_type_availability(store.id, day(0), day(2), name="Penthouse") == []


def test_zero_night_range_is_rejected(hotel):
    store = hotel[0]
    with pytest.raises(ValidationFailed):
        room_type_availability(store.id, day(1), day(1))
    with pytest.raises(ValidationFailed):
        validate_range(day(2), day(1))
    assert validate_range(day(0), day(3)) == 3


def test_assignable_rooms_skip_the_booking_itself(hotel, factory):
    store, std, _, rooms, guest = hotel
    booking = factory.booking(guest, store, std, day(0), day(2), status=BOOKING_CONFIRMED)
    other = factory.booking(guest, store, std, day(1), day(3), status=BOOKING_CONFIRMED, rooms=[rooms[0]])

    assert [r.room_no for r in assignable_rooms(booking)] == ["102"]
    assert assignable_rooms(other) == [rooms[1]]


def test_parse_day_accepts_dates_and_timestamps():
    assert parse_day("2030-05-01") == date(2030, 5, 1)
    assert parse_day("2030-05-01T16:00:00.000Z") == date(2030, 5, 1)
    assert parse_day(datetime(2030, 5, 1, 9, 30)) == date(2030, 5, 1)
    with pytest.raises(ValidationFailed):
        parse_day("next tuesday")
    with pytest.raises(ValidationFailed):
        parse_day(None, "checkIn")
