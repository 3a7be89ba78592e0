import logging
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from calendar_bridge.core.config import Settings
from calendar_bridge.core.exceptions import AuthError, NotAuthenticated
from calendar_bridge.users import crud as users_crud
from .google_oauth import GoogleOAuthClient
from .token_policy import TokenRefreshPolicy

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service layer for the Google sign-in flow and the session lifecycle that
    follows it: callback handling, session checks, logout and forced refresh.
    """

    def __init__(
        self,
        db_session: Session,
        oauth_client: GoogleOAuthClient,
        token_policy: TokenRefreshPolicy,
        settings: Settings,
    ):
        self.db = db_session
        self.oauth_client = oauth_client
        self.token_policy = token_policy
        self.settings = settings

    def _frontend_redirect(self, **params: str) -> str:
        return f"{self.settings.FRONTEND_URL}?{urlencode(params)}"

    def authorization_url(self) -> str:
        return self.oauth_client.authorization_url()

    def handle_callback(self, code: Optional[str], error: Optional[str] = None) -> str:
        """
        Completes the authorization-code flow and returns where to send the browser.

        Never raises: every failure becomes an auth-error redirect so the
        frontend can show the message.
        """
        try:
            if error:
                raise ValueError(f"Authorization denied: {error}")
            if not code:
                raise ValueError("No authorization code received")

            tokens = self.oauth_client.exchange_code(code)
            user_info = self.oauth_client.fetch_user_info(tokens.access_token)
            email = user_info.get("email")
            if not email:
                raise ValueError("Google did not return an email address")
            logger.info(f"User authenticated: {email}")

            users_crud.upsert_user_tokens(
                self.db,
                email=email,
                name=user_info.get("name"),
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                token_expiry=tokens.expiry,
            )
            logger.info(f"User data saved successfully for {email}")
            return self._frontend_redirect(**{"auth-success": "true", "email": email})
        except Exception as e:
            logger.error(f"Callback error: {e}", exc_info=True)
            message = str(e) or "Authentication failed"
            return self._frontend_redirect(**{"auth-error": "true", "error": message})

    def check_session(self, email: Optional[str]) -> bool:
        """True when the user has a usable token, refreshing it first if it is stale."""
        email = email.strip() if email else email
        if not email:
            logger.info("No email provided in auth check")
            return False
        user = users_crud.get_user_by_email(self.db, email)
        try:
            self.token_policy.ensure_fresh(self.db, user)
        except AuthError as e:
            logger.info(f"Auth check failed for {email}: {e.detail}")
            return False
        return True

    def logout(self, email: str) -> None:
        """Revokes (best effort) and forgets the user's tokens. Unknown emails are a no-op."""
        user = users_crud.get_user_by_email(self.db, email)
        if user is None:
            logger.info(f"Logout for unknown user {email}, nothing to clear")
            return

        token = user.access_token or user.refresh_token
        if token:
            try:
                self.oauth_client.revoke(token)
                logger.info(f"Token revoked for: {email}")
            except Exception as e:
                logger.error(f"Token revocation error for {email}: {e}")

        users_crud.clear_tokens(self.db, user, logged_out=True)
        logger.info(f"User tokens cleared for: {email}")

    def refresh(self, email: str) -> None:
        user = users_crud.get_user_by_email(self.db, email)
        if user is None:
            raise NotAuthenticated()
        self.token_policy.ensure_fresh(self.db, user, force=True)
