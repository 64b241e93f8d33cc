from fastapi import Depends, FastAPI, Query, Response
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from api.schemas import CarCreate, CarUpdate, CarOut, NearbyCarOut
from handlers import cars
from handlers.auth import authorize
from models.user import User, ADMIN_ROLES


def list_cars(db: Session = Depends(get_db)):
    return [CarOut.model_validate(c) for c in cars.find_all_cars(db)]


def list_available_cars(db: Session = Depends(get_db)):
    return [CarOut.model_validate(c) for c in cars.find_available_cars(db)]


def list_nearby_cars(
        latitude: float = Query(..., ge=-90, le=90),
        longitude: float = Query(..., ge=-180, le=180),
        radius: int = Query(..., description="Radius in kilometers: 5, 10 or 15"),
        db: Session = Depends(get_db),
):
    return [
        NearbyCarOut(**CarOut.model_validate(car).model_dump(), distance_meters=distance)
        for car, distance in cars.find_nearby(db, latitude, longitude, radius)
    ]


def get_car(car_id: int, db: Session = Depends(get_db)):
    return CarOut.model_validate(cars.find_car(db, car_id))


def create_car(payload: CarCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    car = cars.create_car(db, payload.model_dump(exclude_unset=True), user.id)
    return CarOut.model_validate(car)


def update_car(car_id: int, payload: CarUpdate, db: Session = Depends(get_db),
               user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    car = cars.update_car(db, car_id, payload.model_dump(exclude_unset=True), user.id)
    return CarOut.model_validate(car)


def delete_car(car_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    cars.delete_car(db, car_id, user.id)
    return Response(status_code=204)


def register_cars_routes(app: FastAPI, prefix: str = "/api/cars"):
    app.add_api_route(prefix, list_cars, methods=["GET"], response_model=list[CarOut], tags=["cars"])
    app.add_api_route(f"{prefix}/available", list_available_cars, methods=["GET"],
                      response_model=list[CarOut], tags=["cars"])
    app.add_api_route(f"{prefix}/nearby", list_nearby_cars, methods=["GET"],
                      response_model=list[NearbyCarOut], tags=["cars"])
    app.add_api_route(f"{prefix}/{{car_id}}", get_car, methods=["GET"], response_model=CarOut, tags=["cars"])
    app.add_api_route(prefix, create_car, methods=["POST"], response_model=CarOut, status_code=201, tags=["cars"])
    app.add_api_route(f"{prefix}/{{car_id}}", update_car, methods=["PATCH"], response_model=CarOut, tags=["cars"])
    app.add_api_route(f"{prefix}/{{car_id}}", delete_car, methods=["DELETE"], status_code=204, tags=["cars"])
