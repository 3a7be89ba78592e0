# calendar_bridge/users/crud.py
from sqlalchemy.orm import Session
from typing import Optional
import datetime
import logging

from calendar_bridge.core.timeutils import utcnow
from .models import User

logger = logging.getLogger(__name__)


def _commit(db: Session, user: User, action: str) -> User:
    try:
        db.commit()
        db.refresh(user)
        return user
    except Exception as e:
        logger.error(f"Database commit failed during {action} for user {user.email}: {e}", exc_info=True)
        db.rollback()
        raise


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def upsert_user_tokens(
    db: Session,
    *,
    email: str,
    name: Optional[str],
    access_token: str,
    refresh_token: Optional[str],
    token_expiry: datetime.datetime,
) -> User:
    """
    Inserts or updates the user keyed by email after a successful sign-in.

    Google only issues a refresh token on the first consent (or after access
    was revoked), so an existing refresh token is kept when none is supplied.
    """
    user = get_user_by_email(db, email)
    if user:
        logger.info(f"Updating tokens for user: {email}")
    else:
        logger.info(f"Creating new user: {email}")
        user = User(email=email)
        db.add(user)

    user.access_token = access_token
    user.token_expiry = token_expiry
    user.last_login = utcnow()
    if name:
        user.name = name
    if refresh_token:
        user.refresh_token = refresh_token
    else:
        logger.warning(f"No new refresh_token issued for {email}. Keeping the stored one.")

    return _commit(db, user, "upsert")


def update_access_token(db: Session, user: User, *, access_token: str, token_expiry: datetime.datetime) -> User:
    user.access_token = access_token
    user.token_expiry = token_expiry
    return _commit(db, user, "token update")


def clear_tokens(db: Session, user: User, *, logged_out: bool = False) -> User:
    user.access_token = None
    user.refresh_token = None
    user.token_expiry = None
    if logged_out:
        user.last_logout = utcnow()
    return _commit(db, user, "token clear")
