from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session
from loguru import logger

from errors import NotFound
from models.user import User, UserRole


def normalize_email(raw: str) -> str:
    return (raw or "").strip().lower()


def _active(stmt):
    return stmt.where(User.deleted_at.is_(None))


def find_all_users(db: Session) -> list:
    users = db.execute(_active(select(User)).order_by(User.id)).scalars().all()
    logger.debug(f"find_all_users: found {len(users)} users")
    return users


def find_user_by_id(db: Session, user_id: int):
    user = db.execute(_active(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        logger.debug(f"find_user_by_id: not found id={user_id}")
    return user


def get_user(db: Session, user_id: int) -> User:
    user = find_user_by_id(db, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def find_user_by_email(db: Session, email: str, include_deleted: bool = False):
    stmt = select(User).where(User.email == normalize_email(email))
    if not include_deleted:
        stmt = _active(stmt)
    return db.execute(stmt).scalar_one_or_none()


def create_user(db: Session, email: str, password_hash: str, first_name: str, last_name: str,
                role: UserRole = UserRole.USER) -> User:
    user = User(
        email=normalize_email(email),
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User created id={user.id} role={user.role.value}")
    return user


def update_refresh_token(db: Session, user_id: int, token_hash):
    logger.debug(f"update_refresh_token id={user_id} has_token={token_hash is not None}")
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    user.refresh_token_hash = token_hash
    db.commit()


def soft_delete_user(db: Session, user_id: int):
    user = find_user_by_id(db, user_id)
    if not user:
        logger.warning(f"soft_delete_user: not found id={user_id}")
        raise NotFound(f"User {user_id} not found")
    user.deleted_at = datetime.utcnow()
    user.refresh_token_hash = None
    db.commit()
    logger.info(f"User soft-deleted id={user_id}")


def restore_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    user.deleted_at = None
    db.commit()
    db.refresh(user)
    logger.info(f"User restored id={user_id}")
    return user
