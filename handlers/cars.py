from sqlalchemy import select, update
from sqlalchemy.orm import Session
from loguru import logger

from config import NEARBY_RADII_KM
from errors import NotFound, ValidationError, Conflict
from handlers.calculator import to_money
from handlers.distance import get_distance_meters, bounding_box
from models.car import Car
from models.rental import Rental, OPEN_STATUSES

CAR_FIELDS = ("brand", "model", "year", "price_per_day", "description", "image_url", "available")


def _apply_location(car: Car, latitude, longitude):
    if latitude is None and longitude is None:
        return
    if latitude is None or longitude is None:
        raise ValidationError("latitude and longitude must be given together")
    validate_coordinates(latitude, longitude)
    car.latitude = latitude
    car.longitude = longitude


def validate_coordinates(latitude, longitude):
    if not -90 <= latitude <= 90:
        raise ValidationError("latitude must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValidationError("longitude must be between -180 and 180")


def has_open_rental(db: Session, car_id: int) -> bool:
    stmt = select(Rental.id).where(Rental.car_id == car_id, Rental.status.in_(OPEN_STATUSES)).limit(1)
    return db.execute(stmt).first() is not None


# ===== Queries =====
def find_car(db: Session, car_id: int, for_update: bool = False) -> Car:
    logger.debug(f"find_car id={car_id}")
    stmt = select(Car).where(Car.id == car_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    car = db.execute(stmt).scalar_one_or_none()
    if not car:
        logger.warning(f"find_car: car not found id={car_id}")
        raise NotFound(f"Car {car_id} not found")
    return car


def find_all_cars(db: Session) -> list:
    cars = db.execute(select(Car).order_by(Car.id)).scalars().all()
    logger.debug(f"find_all_cars: found {len(cars)} cars")
    return cars


def find_available_cars(db: Session) -> list:
    cars = db.execute(select(Car).where(Car.available.is_(True)).order_by(Car.id)).scalars().all()
    logger.debug(f"find_available_cars: found {len(cars)} cars")
    return cars


def find_nearby(db: Session, latitude: float, longitude: float, radius_km: int) -> list:
    """
    Available cars with a position within radius_km of the given point.

    Returns (car, distance_meters) pairs ordered by distance, then car id.
    """
    validate_coordinates(latitude, longitude)
    if radius_km not in NEARBY_RADII_KM:
        raise ValidationError(f"radius must be one of {', '.join(map(str, NEARBY_RADII_KM))}")

    radius_meters = radius_km * 1000
    logger.debug(f"find_nearby lat={latitude} lng={longitude} radius={radius_km}km ({radius_meters}m)")

    min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_meters)
    stmt = select(Car).where(
        Car.available.is_(True),
        Car.latitude.is_not(None),
        Car.longitude.is_not(None),
        Car.latitude.between(min_lat, max_lat),
    )
    if min_lng is not None:
        stmt = stmt.where(Car.longitude.between(min_lng, max_lng))

    results = []
    for car in db.execute(stmt).scalars():
        distance = get_distance_meters(latitude, longitude, car.latitude, car.longitude)
        if distance <= radius_meters:
            results.append((car, distance))
    results.sort(key=lambda pair: (pair[1], pair[0].id))

    logger.debug(f"find_nearby: found {len(results)} cars within {radius_km}km")
    return results


# ===== Availability =====
def set_availability(db: Session, car_id: int, available: bool):
    """Set the availability flag only. The caller commits."""
    logger.debug(f"set_availability id={car_id} available={available}")
    car = db.get(Car, car_id)
    if not car:
        raise NotFound(f"Car {car_id} not found")
    car.available = available


def reserve_car(db: Session, car_id: int) -> bool:
    """
    Flip an available car to unavailable in a single conditional UPDATE.

    Returns False when the car was already taken, e.g. by a booking committed
    after this session last read it. The caller commits.
    """
    stmt = (
        update(Car)
        .where(Car.id == car_id, Car.available.is_(True))
        .values(available=False)
        .execution_options(synchronize_session=False)
    )
    reserved = db.execute(stmt).rowcount == 1
    logger.debug(f"reserve_car id={car_id} reserved={reserved}")
    return reserved


# ===== Management =====
def create_car(db: Session, data: dict, admin_id: int) -> Car:
    logger.debug(f"create_car brand={data.get('brand')} model={data.get('model')} admin={admin_id}")
    car = Car(**{k: data[k] for k in CAR_FIELDS if data.get(k) is not None})
    car.price_per_day = to_money(car.price_per_day)
    if car.available is None:
        car.available = True
    _apply_location(car, data.get("latitude"), data.get("longitude"))

    db.add(car)
    db.commit()
    db.refresh(car)
    logger.info(f"Car created id={car.id} by admin={admin_id}")
    return car


def update_car(db: Session, car_id: int, data: dict, admin_id: int) -> Car:
    logger.debug(f"update_car id={car_id} admin={admin_id} fields={sorted(data)}")
    car = find_car(db, car_id, for_update=True)

    if data.get("available") is True and not car.available and has_open_rental(db, car_id):
        db.rollback()
        logger.warning(f"update_car: refusing to mark car {car_id} available with an open rental")
        raise Conflict("Car has a pending or active rental and cannot be marked available")

    try:
        for field in CAR_FIELDS:
            if field in data and data[field] is not None:
                setattr(car, field, data[field])
        if "price_per_day" in data and data["price_per_day"] is not None:
            car.price_per_day = to_money(data["price_per_day"])
        _apply_location(car, data.get("latitude"), data.get("longitude"))
    except ValidationError:
        db.rollback()
        raise

    db.commit()
    db.refresh(car)
    logger.info(f"Car updated id={car_id} by admin={admin_id}")
    return car


def delete_car(db: Session, car_id: int, admin_id: int):
    logger.debug(f"delete_car id={car_id} admin={admin_id}")
    car = find_car(db, car_id)
    has_rentals = db.execute(select(Rental.id).where(Rental.car_id == car_id).limit(1)).first()
    if has_rentals:
        logger.warning(f"delete_car: car {car_id} has rental history")
        raise Conflict("Car has rentals and cannot be deleted")
    db.delete(car)
    db.commit()
    logger.info(f"Car deleted id={car_id} by admin={admin_id}")
