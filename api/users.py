from fastapi import Depends, FastAPI, Response
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from api.schemas import UserOut
from handlers import users
from handlers.auth import authorize
from models.user import User, ADMIN_ROLES


def list_users(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return [UserOut.model_validate(u) for u in users.find_all_users(db)]


def get_user(user_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return UserOut.model_validate(users.get_user(db, user_id))


def delete_user(user_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    users.soft_delete_user(db, user_id)
    return Response(status_code=204)


def restore_user(user_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    authorize(user, ADMIN_ROLES)
    return UserOut.model_validate(users.restore_user(db, user_id))


def register_users_routes(app: FastAPI, prefix: str = "/api/users"):
    app.add_api_route(prefix, list_users, methods=["GET"], response_model=list[UserOut], tags=["users"])
    app.add_api_route(f"{prefix}/{{user_id}}", get_user, methods=["GET"], response_model=UserOut, tags=["users"])
    app.add_api_route(f"{prefix}/{{user_id}}", delete_user, methods=["DELETE"], status_code=204, tags=["users"])
    app.add_api_route(f"{prefix}/{{user_id}}/restore", restore_user, methods=["PATCH"], response_model=UserOut,
                      tags=["users"])
