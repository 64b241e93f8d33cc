from datetime import date

from sqlalchemy import select, update, or_, not_
from sqlalchemy.orm import Session, joinedload
from loguru import logger

from errors import (
    InvalidDateRange, CarUnavailable, BookingConflict,
    AlreadyCompleted, InvalidTransition, Forbidden, NotFound,
)
from handlers.calculator import calculate_rental_days, to_money
from handlers.cars import find_car, set_availability, reserve_car
from models.rental import Rental, RentalStatus, OPEN_STATUSES
from models.user import UserRole, ADMIN_ROLES


def _with_relations(stmt):
    return stmt.options(joinedload(Rental.car), joinedload(Rental.user))


# ===== Storage =====
def find_rental(db: Session, rental_id: int) -> Rental:
    logger.debug(f"find_rental id={rental_id}")
    rental = db.execute(_with_relations(select(Rental).where(Rental.id == rental_id))).scalar_one_or_none()
    if not rental:
        logger.warning(f"find_rental: not found id={rental_id}")
        raise NotFound(f"Rental {rental_id} not found")
    return rental


def find_overlapping(db: Session, car_id: int, statuses, start: date, end: date):
    """First rental of the car in one of statuses whose inclusive date range touches [start, end]."""
    stmt = select(Rental).where(
        Rental.car_id == car_id,
        Rental.status.in_(statuses),
        not_(or_(Rental.end_date < start, Rental.start_date > end)),
    ).order_by(Rental.id).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def find_rentals_by_user(db: Session, user_id: int) -> list:
    stmt = select(Rental).options(joinedload(Rental.car)).where(Rental.user_id == user_id)
    rentals = db.execute(stmt.order_by(Rental.created_at.desc(), Rental.id.desc())).scalars().all()
    logger.debug(f"find_rentals_by_user user={user_id}: found {len(rentals)} rentals")
    return rentals


def find_all_rentals(db: Session) -> list:
    stmt = _with_relations(select(Rental)).order_by(Rental.created_at.desc(), Rental.id.desc())
    rentals = db.execute(stmt).scalars().all()
    logger.debug(f"find_all_rentals: found {len(rentals)} rentals")
    return rentals


def find_open_rentals(db: Session) -> list:
    stmt = _with_relations(select(Rental).where(Rental.status.in_(OPEN_STATUSES)))
    rentals = db.execute(stmt.order_by(Rental.created_at.desc(), Rental.id.desc())).scalars().all()
    logger.debug(f"find_open_rentals: found {len(rentals)} rentals")
    return rentals


# ===== Booking =====
def create_rental(db: Session, renter_id: int, car_id: int, start_date: date, end_date: date) -> Rental:
    """
    Book car_id for renter_id over [start_date, end_date].

    The car row is locked for the rest of the transaction, so the conflict
    check, the availability write and the insert commit together or not at all.
    The availability write only succeeds if the car is still available, so a
    concurrent booking that passed the same checks loses with CarUnavailable
    on backends without row locks as well.
    """
    logger.debug(f"create_rental user={renter_id} car={car_id} start={start_date} end={end_date}")

    if start_date >= end_date:
        raise InvalidDateRange("End date must be after start date")

    try:
        car = find_car(db, car_id, for_update=True)

        if not car.available:
            logger.warning(f"create_rental: car not available car={car_id}")
            raise CarUnavailable("Car is not available for renting")

        conflicting = find_overlapping(db, car_id, OPEN_STATUSES, start_date, end_date)
        if conflicting:
            logger.warning(f"create_rental: date conflict car={car_id} conflicting_rental={conflicting.id}")
            raise BookingConflict("Car already booked for the selected dates")

        days = calculate_rental_days(start_date, end_date)
        daily_rate = to_money(car.price_per_day)
        total_cost = to_money(daily_rate * days)
        logger.debug(f"create_rental: days={days} daily_rate={daily_rate} total_cost={total_cost}")

        if not reserve_car(db, car_id):
            logger.warning(f"create_rental: car taken by a concurrent booking car={car_id}")
            raise CarUnavailable("Car is not available for renting")

        rental = Rental(
            user_id=renter_id,
            car_id=car_id,
            start_date=start_date,
            end_date=end_date,
            daily_rate=daily_rate,
            total_cost=total_cost,
            status=RentalStatus.PENDING,
        )
        db.add(rental)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Rental created id={rental.id} user={renter_id} car={car_id}")
    return find_rental(db, rental.id)


# ===== Lifecycle =====
def _close_rental(db: Session, rental: Rental, status: RentalStatus, from_statuses) -> bool:
    """
    Move rental to status if it is still in one of from_statuses, and free its car.

    Returns False, with nothing written, when another request changed the
    status first.
    """
    stmt = (
        update(Rental)
        .where(Rental.id == rental.id, Rental.status.in_(from_statuses))
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    try:
        if db.execute(stmt).rowcount != 1:
            db.rollback()
            return False
        set_availability(db, rental.car_id, True)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return True


def _check_completable(rental: Rental):
    if rental.status == RentalStatus.COMPLETED:
        raise AlreadyCompleted("Rental is already completed")
    if rental.status == RentalStatus.CANCELLED:
        raise InvalidTransition("Cannot complete a cancelled rental")


def _check_cancellable(rental: Rental):
    if rental.status != RentalStatus.PENDING:
        raise InvalidTransition(f"Cannot cancel rental with status: {rental.status.value}")


def complete_rental(db: Session, rental_id: int, actor_id: int) -> Rental:
    """Mark a rental completed. Administrator rights are checked by the caller."""
    logger.debug(f"complete_rental id={rental_id} admin={actor_id}")
    rental = find_rental(db, rental_id)

    _check_completable(rental)

    if not _close_rental(db, rental, RentalStatus.COMPLETED, OPEN_STATUSES):
        logger.warning(f"complete_rental: status changed concurrently id={rental_id}")
        _check_completable(find_rental(db, rental_id))
        raise InvalidTransition("Rental status changed, try again")

    logger.info(f"Rental completed id={rental_id} by admin={actor_id}")
    return find_rental(db, rental_id)


def cancel_rental(db: Session, rental_id: int, actor_id: int, actor_role: UserRole) -> Rental:
    """Cancel a pending rental. Renters may cancel their own, administrators any."""
    logger.debug(f"cancel_rental id={rental_id} actor={actor_id} role={actor_role.value}")
    rental = find_rental(db, rental_id)

    if actor_role not in ADMIN_ROLES and rental.user_id != actor_id:
        logger.warning(f"cancel_rental: forbidden actor={actor_id} rental={rental_id}")
        raise Forbidden("You can only cancel your own rentals")

    _check_cancellable(rental)

    if not _close_rental(db, rental, RentalStatus.CANCELLED, (RentalStatus.PENDING,)):
        logger.warning(f"cancel_rental: status changed concurrently id={rental_id}")
        _check_cancellable(find_rental(db, rental_id))
        raise InvalidTransition("Rental status changed, try again")

    logger.info(f"Rental cancelled id={rental_id} by actor={actor_id}")
    return find_rental(db, rental_id)
