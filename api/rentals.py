from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from api.schemas import RentalCreate, RentalOut
from handlers import rentals
from handlers.auth import authorize
from models.user import User, ADMIN_ROLES


def create_rental(payload: RentalCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rental = rentals.create_rental(db, user.id, payload.car_id, payload.start_date, payload.end_date)
    return RentalOut.model_validate(rental)


def list_my_rentals(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [RentalOut.model_validate(r) for r in rentals.find_rentals_by_user(db, user.id)]


def list_rentals(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return [RentalOut.model_validate(r) for r in rentals.find_all_rentals(db)]


def list_open_rentals(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return [RentalOut.model_validate(r) for r in rentals.find_open_rentals(db)]


def complete_rental(rental_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return RentalOut.model_validate(rentals.complete_rental(db, rental_id, user.id))


def cancel_rental(rental_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return RentalOut.model_validate(rentals.cancel_rental(db, rental_id, user.id, user.role))


def register_rentals_routes(app: FastAPI, prefix: str = "/api/rentals"):
    app.add_api_route(prefix, create_rental, methods=["POST"], response_model=RentalOut, status_code=201,
                      tags=["rentals"])
    app.add_api_route(prefix, list_rentals, methods=["GET"], response_model=list[RentalOut], tags=["rentals"])
    app.add_api_route(f"{prefix}/active", list_open_rentals, methods=["GET"], response_model=list[RentalOut],
                      tags=["rentals"])
    app.add_api_route(f"{prefix}/my", list_my_rentals, methods=["GET"], response_model=list[RentalOut],
                      tags=["rentals"])
    app.add_api_route(f"{prefix}/{{rental_id}}/complete", complete_rental, methods=["PATCH"],
                      response_model=RentalOut, tags=["rentals"])
    app.add_api_route(f"{prefix}/{{rental_id}}/cancel", cancel_rental, methods=["PATCH"],
                      response_model=RentalOut, tags=["rentals"])
