import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from errors import (
    InvalidDateRange, ValidationError, NotFound, CarUnavailable, BookingConflict,
    Conflict, AlreadyCompleted, InvalidTransition, Forbidden,
)
from handlers import rentals, cars, users
from models.rental import Rental, RentalStatus, OPEN_STATUSES
from models.user import UserRole

MARCH_1, MARCH_5, MARCH_7, MARCH_10 = date(2026, 3, 1), date(2026, 3, 5), date(2026, 3, 7), date(2026, 3, 10)


def _count_rentals(db):
    return db.execute(select(func.count(Rental.id))).scalar_one()


def _reload(db, obj):
    db.refresh(obj)
    return obj


# ===== Booking =====
def test_booking_creates_pending_rental(db, car, renter):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)

    assert rental.status == RentalStatus.PENDING
    assert rental.daily_rate == Decimal("50.00")
    assert rental.total_cost == Decimal("300.00")
    assert rental.car.id == car.id
    assert rental.user.id == renter.id
    assert _reload(db, car).available is False


@pytest.mark.parametrize("start, end", [(MARCH_7, MARCH_1), (MARCH_5, MARCH_5)])
def test_booking_rejects_bad_range_before_anything_else(db, renter, start, end):
    # car 999 does not exist; the date check must fire first
    with pytest.raises(InvalidDateRange):
        rentals.create_rental(db, renter.id, 999, start, end)


def test_bad_range_fails_even_on_unavailable_car(db, make_car, renter):
    car = make_car(available=False)
    with pytest.raises(ValidationError):
        rentals.create_rental(db, renter.id, car.id, MARCH_7, MARCH_1)


def test_booking_missing_car(db, renter):
    with pytest.raises(NotFound):
        rentals.create_rental(db, renter.id, 999, MARCH_1, MARCH_7)


def test_booking_unavailable_car_creates_nothing(db, make_car, renter):
    car = make_car(available=False)
    with pytest.raises(CarUnavailable):
        rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    assert _count_rentals(db) == 0
    assert issubclass(CarUnavailable, Conflict)


def test_booking_conflicts_with_open_rental(db, car, make_user):
    # an externally activated rental with the flag restored by hand
    other = make_user()
    db.add(Rental(user_id=other.id, car_id=car.id, start_date=MARCH_1, end_date=MARCH_7,
                  daily_rate=Decimal("50.00"), total_cost=Decimal("300.00"), status=RentalStatus.ACTIVE))
    db.commit()

    with pytest.raises(BookingConflict):
        rentals.create_rental(db, other.id, car.id, MARCH_5, MARCH_10)
    assert _reload(db, car).available is True
    assert _count_rentals(db) == 1


@pytest.mark.parametrize("start, end, overlaps", [
    (date(2026, 2, 20), date(2026, 3, 1), True),  # touches the first day
    (date(2026, 3, 7), date(2026, 3, 9), True),  # touches the last day
    (date(2026, 3, 2), date(2026, 3, 3), True),  # inside
    (date(2026, 2, 1), date(2026, 4, 1), True),  # covers
    (date(2026, 2, 20), date(2026, 2, 28), False),
    (date(2026, 3, 8), date(2026, 3, 9), False),
])
def test_find_overlapping_uses_inclusive_bounds(db, car, renter, start, end, overlaps):
    existing = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    found = rentals.find_overlapping(db, car.id, OPEN_STATUSES, start, end)
    assert (found is not None) == overlaps
    if overlaps:
        assert found.id == existing.id


def test_find_overlapping_ignores_closed_rentals(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rentals.complete_rental(db, rental.id, admin.id)
    assert rentals.find_overlapping(db, car.id, OPEN_STATUSES, MARCH_5, MARCH_10) is None
    assert rentals.find_overlapping(db, car.id, [RentalStatus.COMPLETED], MARCH_5, MARCH_10).id == rental.id


def test_daily_rate_is_captured_at_booking(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rentals.cancel_rental(db, rental.id, renter.id, renter.role)
    cars.update_car(db, car.id, {"price_per_day": Decimal("80.00")}, admin.id)
    assert _reload(db, rental).daily_rate == Decimal("50.00")

    second = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_5)
    assert second.daily_rate == Decimal("80.00")
    assert second.total_cost == Decimal("320.00")


@pytest.mark.parametrize("price, start, end", [
    ("49.99", date(2026, 1, 1), date(2026, 1, 2)),
    ("33.33", date(2026, 2, 27), date(2026, 3, 3)),
    ("120.10", date(2025, 12, 25), date(2026, 1, 8)),
])
def test_total_cost_is_rate_times_days(db, make_car, renter, price, start, end):
    car = make_car(price=price)
    rental = rentals.create_rental(db, renter.id, car.id, start, end)
    assert rental.total_cost == Decimal(price) * (end - start).days


def test_open_rentals_never_overlap(db, make_car, renter, admin):
    car = make_car()
    requests = [
        (date(2026, 3, 1), date(2026, 3, 7)),
        (date(2026, 3, 5), date(2026, 3, 10)),
        (date(2026, 3, 8), date(2026, 3, 12)),
        (date(2026, 3, 7), date(2026, 3, 9)),
        (date(2026, 3, 13), date(2026, 3, 15)),
    ]
    for start, end in requests:
        try:
            rentals.create_rental(db, renter.id, car.id, start, end)
        except Conflict:
            pass
        # free the flag without closing anything, so only the overlap check guards
        cars.set_availability(db, car.id, True)
        db.commit()

    open_rentals = [r for r in rentals.find_all_rentals(db) if r.status in OPEN_STATUSES]
    assert len(open_rentals) == 3
    for a in open_rentals:
        for b in open_rentals:
            if a.id != b.id:
                assert a.end_date < b.start_date or a.start_date > b.end_date


# ===== Lifecycle =====
def test_complete_restores_availability(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    completed = rentals.complete_rental(db, rental.id, admin.id)
    assert completed.status == RentalStatus.COMPLETED
    assert _reload(db, car).available is True


def test_complete_active_rental(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rental.status = RentalStatus.ACTIVE
    db.commit()
    assert rentals.complete_rental(db, rental.id, admin.id).status == RentalStatus.COMPLETED


def test_complete_twice(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rentals.complete_rental(db, rental.id, admin.id)
    with pytest.raises(AlreadyCompleted):
        rentals.complete_rental(db, rental.id, admin.id)


def test_complete_cancelled(db, car, renter, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rentals.cancel_rental(db, rental.id, renter.id, renter.role)
    with pytest.raises(InvalidTransition):
        rentals.complete_rental(db, rental.id, admin.id)


def test_complete_missing(db, admin):
    with pytest.raises(NotFound):
        rentals.complete_rental(db, 999, admin.id)


def test_renter_cancels_own_rental(db, car, renter):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    cancelled = rentals.cancel_rental(db, rental.id, renter.id, UserRole.USER)
    assert cancelled.status == RentalStatus.CANCELLED
    assert _reload(db, car).available is True


@pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.SUPERADMIN])
def test_admin_cancels_any_rental(db, car, renter, make_user, role):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    staff = make_user(role=role)
    assert rentals.cancel_rental(db, rental.id, staff.id, role).status == RentalStatus.CANCELLED


def test_stranger_cannot_cancel(db, car, renter, make_user):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    stranger = make_user()
    with pytest.raises(Forbidden):
        rentals.cancel_rental(db, rental.id, stranger.id, UserRole.USER)
    assert _reload(db, rental).status == RentalStatus.PENDING
    assert _reload(db, car).available is False


@pytest.mark.parametrize("status", [RentalStatus.ACTIVE, RentalStatus.COMPLETED, RentalStatus.CANCELLED])
def test_only_pending_rentals_can_be_cancelled(db, car, renter, status):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rental.status = status
    db.commit()
    with pytest.raises(InvalidTransition):
        rentals.cancel_rental(db, rental.id, renter.id, renter.role)


def test_forbidden_is_checked_before_status(db, car, renter, make_user, admin):
    rental = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    rentals.complete_rental(db, rental.id, admin.id)
    with pytest.raises(Forbidden):
        rentals.cancel_rental(db, rental.id, make_user().id, UserRole.USER)


# ===== Queries =====
def test_rental_queries(db, make_car, renter, make_user, admin):
    first_car, second_car = make_car(), make_car()
    other = make_user()
    mine = rentals.create_rental(db, renter.id, first_car.id, MARCH_1, MARCH_7)
    theirs = rentals.create_rental(db, other.id, second_car.id, MARCH_1, MARCH_7)
    rentals.complete_rental(db, theirs.id, admin.id)

    assert [r.id for r in rentals.find_rentals_by_user(db, renter.id)] == [mine.id]
    assert {r.id for r in rentals.find_all_rentals(db)} == {mine.id, theirs.id}
    assert [r.id for r in rentals.find_open_rentals(db)] == [mine.id]


def test_find_rental_missing(db):
    with pytest.raises(NotFound):
        rentals.find_rental(db, 1)


# ===== Scenario =====
def test_booking_lifecycle_scenario(db, car, renter, make_user, admin):
    first = rentals.create_rental(db, renter.id, car.id, MARCH_1, MARCH_7)
    assert first.total_cost == Decimal("300.00")
    assert first.status == RentalStatus.PENDING
    assert _reload(db, car).available is False

    second_renter = make_user()
    with pytest.raises(Conflict):
        rentals.create_rental(db, second_renter.id, car.id, MARCH_5, MARCH_10)

    completed = rentals.complete_rental(db, first.id, admin.id)
    assert completed.status == RentalStatus.COMPLETED
    assert _reload(db, car).available is True

    second = rentals.create_rental(db, second_renter.id, car.id, MARCH_5, MARCH_10)
    assert second.status == RentalStatus.PENDING
    assert second.total_cost == Decimal("250.00")

    with pytest.raises(InvalidTransition):
        rentals.cancel_rental(db, first.id, renter.id, renter.role)


# ===== Separate sessions =====
@pytest.fixture
def shared_car(file_session_factory):
    with file_session_factory() as db:
        renter_ids = [users.create_user(db, f"driver{n}@example.com", "not-a-real-hash", "Test", f"Driver{n}").id
                      for n in (1, 2)]
        car = cars.create_car(db, {"brand": "Toyota", "model": "Camry", "year": 2022,
                                   "price_per_day": Decimal("50.00")}, admin_id=0)
        return car.id, renter_ids


def test_simultaneous_bookings_of_one_car(file_session_factory, shared_car, monkeypatch):
    car_id, renter_ids = shared_car
    both_checked = threading.Barrier(2, timeout=10)
    find_overlapping = rentals.find_overlapping

    def find_overlapping_then_wait(*args):
        found = find_overlapping(*args)
        both_checked.wait()
        return found

    monkeypatch.setattr(rentals, "find_overlapping", find_overlapping_then_wait)
    outcomes = []

    def book(renter_id):
        db = file_session_factory()
        try:
            rentals.create_rental(db, renter_id, car_id, MARCH_1, MARCH_7)
            outcomes.append("booked")
        except CarUnavailable:
            outcomes.append("unavailable")
        finally:
            db.close()

    threads = [threading.Thread(target=book, args=(renter_id,)) for renter_id in renter_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["booked", "unavailable"]
    with file_session_factory() as db:
        assert len(rentals.find_open_rentals(db)) == 1
        assert cars.find_car(db, car_id).available is False


def test_booking_rereads_a_car_loaded_earlier(file_session_factory, shared_car):
    car_id, (first, second) = shared_car
    late_db = file_session_factory()
    try:
        assert cars.find_car(late_db, car_id).available is True
        with file_session_factory() as db:
            rentals.create_rental(db, first, car_id, MARCH_1, MARCH_7)

        with pytest.raises(CarUnavailable):
            rentals.create_rental(late_db, second, car_id, MARCH_5, MARCH_10)
        assert len(rentals.find_open_rentals(late_db)) == 1
    finally:
        late_db.close()


def test_complete_after_cancel_from_another_session(file_session_factory, shared_car):
    car_id, (renter_id, _) = shared_car
    with file_session_factory() as db:
        rental_id = rentals.create_rental(db, renter_id, car_id, MARCH_1, MARCH_7).id

    admin_db, renter_db = file_session_factory(), file_session_factory()
    try:
        assert rentals.find_rental(admin_db, rental_id).status == RentalStatus.PENDING
        rentals.cancel_rental(renter_db, rental_id, renter_id, UserRole.USER)

        with pytest.raises(InvalidTransition):
            rentals.complete_rental(admin_db, rental_id, actor_id=0)
        assert rentals.find_rental(admin_db, rental_id).status == RentalStatus.CANCELLED
        assert cars.find_car(admin_db, car_id).available is True
    finally:
        admin_db.close()
        renter_db.close()
