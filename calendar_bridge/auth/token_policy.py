# calendar_bridge/auth/token_policy.py
import datetime
import logging
import threading
import weakref
from typing import Callable, Optional

from google.auth.exceptions import GoogleAuthError, RefreshError
from sqlalchemy.orm import Session

from calendar_bridge.core.exceptions import NotAuthenticated, SessionExpired
from calendar_bridge.core.timeutils import as_utc, utcnow
from calendar_bridge.users import crud as users_crud
from calendar_bridge.users.models import User
from .google_oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)


class TokenRefreshPolicy:
    """
    Decides whether a user's access token is usable and renews it through
    Google when it is missing, expired or about to expire.

    Shared by the request gate, the session check and the manual refresh
    endpoint. Refreshes for the same email are serialised inside the process;
    concurrent processes may still both refresh, and the last write wins.
    """

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        buffer_seconds: int = 300,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.oauth_client = oauth_client
        self.buffer = datetime.timedelta(seconds=buffer_seconds)
        self.clock = clock
        # Entries vanish once no request holds the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, email: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(email)
            if lock is None:
                lock = threading.Lock()
                self._locks[email] = lock
            return lock

    def is_stale(self, user: User) -> bool:
        if not user.access_token:
            return True
        expiry = as_utc(user.token_expiry)
        if expiry is None:
            return True
        return expiry <= self.clock() + self.buffer

    def ensure_fresh(self, db: Session, user: Optional[User], force: bool = False) -> User:
        """
        Returns a user whose access token is good for at least the buffer window.

        Raises:
            NotAuthenticated: no user record, or no refresh token to renew with.
            SessionExpired: Google refused or failed the refresh.
        """
        if user is None:
            raise NotAuthenticated()
        if not user.refresh_token:
            logger.info(f"No refresh token stored for {user.email}")
            raise NotAuthenticated()
        if not force and not self.is_stale(user):
            return user

        with self._lock_for(user.email):
            db.refresh(user)
            if not user.refresh_token:
                raise NotAuthenticated()
            if not force and not self.is_stale(user):
                logger.debug(f"Token for {user.email} was refreshed by a concurrent request")
                return user
            return self._refresh(db, user)

    def _refresh(self, db: Session, user: User) -> User:
        logger.info(f"Token expired or expiring soon for {user.email}, refreshing...")
        try:
            tokens = self.oauth_client.refresh(user.refresh_token)
        except RefreshError as e:
            logger.error(f"Refresh token rejected for {user.email}: {e}", exc_info=True)
            if "invalid_grant" in str(e).lower():
                logger.error("Error 'invalid_grant' received. Refresh token might be revoked or expired.")
            users_crud.clear_tokens(db, user)
            raise SessionExpired()
        except GoogleAuthError as e:
            logger.error(f"Could not refresh token for {user.email}: {e}", exc_info=True)
            raise SessionExpired()

        user = users_crud.update_access_token(
            db, user, access_token=tokens.access_token, token_expiry=tokens.expiry
        )
        logger.info(f"Token refreshed successfully for user: {user.email}")
        return user
