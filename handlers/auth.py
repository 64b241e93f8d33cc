from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash
from loguru import logger

import config
from errors import Unauthorized, Forbidden, EmailTaken
from handlers import users
from models.user import User, UserRole

ACCESS_SALT = "access-token"
REFRESH_SALT = "refresh-token"


class TokenService:
    """Issues and verifies signed, timestamped access and refresh tokens."""

    def __init__(self, secret_key: str = config.SECRET_KEY, refresh_secret_key: str = config.REFRESH_SECRET_KEY,
                 access_max_age: int = config.ACCESS_TOKEN_MAX_AGE,
                 refresh_max_age: int = config.REFRESH_TOKEN_MAX_AGE):
        self._access = URLSafeTimedSerializer(secret_key, salt=ACCESS_SALT)
        self._refresh = URLSafeTimedSerializer(refresh_secret_key, salt=REFRESH_SALT)
        self.access_max_age = access_max_age
        self.refresh_max_age = refresh_max_age

    @staticmethod
    def _payload(user: User) -> dict:
        return {"sub": user.id, "email": user.email, "role": user.role.value}

    def issue(self, user: User) -> dict:
        payload = self._payload(user)
        return {
            "access_token": self._access.dumps(payload),
            "refresh_token": self._refresh.dumps(payload),
        }

    def verify_access(self, token: str) -> dict:
        return self._load(self._access, token, self.access_max_age)

    def verify_refresh(self, token: str) -> dict:
        return self._load(self._refresh, token, self.refresh_max_age)

    @staticmethod
    def _load(serializer, token, max_age) -> dict:
        try:
            return serializer.loads(token, max_age=max_age)
        except SignatureExpired:
            raise Unauthorized("Token expired")
        except BadSignature:
            raise Unauthorized("Invalid token")


def hash_secret(raw: str) -> str:
    return generate_password_hash(raw)


def authorize(actor: User, roles):
    """Raise Forbidden unless the actor holds one of roles."""
    if actor is None:
        raise Forbidden("Access denied")
    if actor.role not in roles:
        required = ", ".join(r.value for r in roles)
        logger.warning(f"authorize: user={actor.id} role={actor.role.value} lacks one of [{required}]")
        raise Forbidden(f"Requires one of roles: {required}")


def _issue_and_store(db: Session, tokens: TokenService, user: User) -> dict:
    pair = tokens.issue(user)
    users.update_refresh_token(db, user.id, hash_secret(pair["refresh_token"]))
    return pair


def register(db: Session, tokens: TokenService, email: str, password: str, first_name: str, last_name: str) -> dict:
    logger.debug(f"register email={email}")
    if users.find_user_by_email(db, email, include_deleted=True):
        raise EmailTaken("Email already registered")

    user = users.create_user(db, email, hash_secret(password), first_name, last_name, role=UserRole.USER)
    pair = _issue_and_store(db, tokens, user)
    logger.info(f"Register success user={user.id}")
    return pair


def login(db: Session, tokens: TokenService, email: str, password: str) -> dict:
    logger.debug(f"login email={email}")
    user = users.find_user_by_email(db, email)
    if not user:
        logger.warning(f"login failed, user not found email={email}")
        raise Unauthorized("Invalid credentials")
    if not check_password_hash(user.password_hash, password):
        logger.warning(f"login failed, wrong password user={user.id}")
        raise Unauthorized("Invalid credentials")

    pair = _issue_and_store(db, tokens, user)
    logger.info(f"Login success user={user.id}")
    return pair


def refresh(db: Session, tokens: TokenService, refresh_token: str) -> dict:
    payload = tokens.verify_refresh(refresh_token)
    user = users.find_user_by_id(db, payload.get("sub"))
    if not user or not user.refresh_token_hash:
        raise Unauthorized("Invalid refresh token")
    if not check_password_hash(user.refresh_token_hash, refresh_token):
        raise Unauthorized("Refresh token mismatch")

    pair = _issue_and_store(db, tokens, user)
    logger.debug(f"Refresh success user={user.id}")
    return pair


def logout(db: Session, user_id: int):
    users.update_refresh_token(db, user_id, None)
    logger.info(f"Logout user={user_id}")


def current_user(db: Session, tokens: TokenService, access_token: str) -> User:
    payload = tokens.verify_access(access_token)
    user = users.find_user_by_id(db, payload.get("sub"))
    if not user:
        raise Unauthorized("User not found")
    return user


def ensure_superadmin(db: Session, email, password):
    """Create the initial superadmin account if it does not exist yet."""
    if not email or not password:
        return None
    existing = users.find_user_by_email(db, email, include_deleted=True)
    if existing:
        return existing
    user = users.create_user(db, email, hash_secret(password), "Super", "Admin", role=UserRole.SUPERADMIN)
    logger.info(f"Superadmin bootstrapped id={user.id}")
    return user
