from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from errors import Unauthorized
from handlers import auth
from models.user import User

bearer = HTTPBearer(auto_error=False)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_tokens(request: Request) -> auth.TokenService:
    return request.app.state.tokens


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing bearer token")
    return credentials.credentials


def get_current_user(
        request: Request,
        token: str = Depends(bearer_token),
        db: Session = Depends(get_db),
        tokens: auth.TokenService = Depends(get_tokens),
) -> User:
    user = auth.current_user(db, tokens, token)
    request.state.user_id = user.id
    return user
