from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from api.deps import get_db, get_tokens, get_current_user, bearer_token
from api.schemas import RegisterIn, LoginIn, TokensOut, MessageOut
from handlers import auth
from models.user import User


def register(payload: RegisterIn, db: Session = Depends(get_db), tokens: auth.TokenService = Depends(get_tokens)):
    pair = auth.register(db, tokens, payload.email, payload.password, payload.first_name, payload.last_name)
    return TokensOut(**pair)


def login(payload: LoginIn, db: Session = Depends(get_db), tokens: auth.TokenService = Depends(get_tokens)):
    return TokensOut(**auth.login(db, tokens, payload.email, payload.password))


def refresh(token: str = Depends(bearer_token), db: Session = Depends(get_db),
            tokens: auth.TokenService = Depends(get_tokens)):
    return TokensOut(**auth.refresh(db, tokens, token))


def logout(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    auth.logout(db, user.id)
    return MessageOut(message="Logged out successfully")


def register_auth_routes(app: FastAPI, prefix: str = "/api/auth"):
    app.add_api_route(f"{prefix}/register", register, methods=["POST"], response_model=TokensOut, status_code=201,
                      tags=["auth"])
    app.add_api_route(f"{prefix}/login", login, methods=["POST"], response_model=TokensOut, tags=["auth"])
    app.add_api_route(f"{prefix}/refresh", refresh, methods=["POST"], response_model=TokensOut, tags=["auth"])
    app.add_api_route(f"{prefix}/logout", logout, methods=["POST"], response_model=MessageOut, tags=["auth"])
