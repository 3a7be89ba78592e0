# calendar_bridge/auth/google_oauth.py
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from google.oauth2.credentials import Credentials as GoogleCredentials
from google.auth.transport.requests import Request as GoogleAuthRequest
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from calendar_bridge.core.config import Settings
from calendar_bridge.core.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = datetime.timedelta(hours=1)


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: Optional[str]
    expiry: datetime.datetime


class GoogleOAuthClient:
    """
    Thin wrapper over the Google OAuth2 endpoints used by the application.

    Every call builds its own Flow/Credentials object from the injected
    settings, so one instance is safe to share between concurrent requests.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _client_config(self) -> Dict[str, Any]:
        return {
            "web": {
                "client_id": self.settings.GOOGLE_CLIENT_ID,
                "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
                "auth_uri": self.settings.AUTH_URI,
                "token_uri": self.settings.TOKEN_URI,
                "redirect_uris": [self.settings.GOOGLE_REDIRECT_URI],
            }
        }

    def _flow(self) -> Flow:
        # The callback is served by a different request than the one that built
        # the URL, so there is nowhere to keep a PKCE verifier between the two.
        return Flow.from_client_config(
            client_config=self._client_config(),
            scopes=self.settings.SCOPES,
            redirect_uri=self.settings.GOOGLE_REDIRECT_URI,
            autogenerate_code_verifier=False,
        )

    @staticmethod
    def _tokens_from_credentials(creds: GoogleCredentials) -> OAuthTokens:
        expiry = as_utc(creds.expiry) or utcnow() + DEFAULT_TOKEN_LIFETIME
        return OAuthTokens(access_token=creds.token, refresh_token=creds.refresh_token, expiry=expiry)

    def authorization_url(self) -> str:
        url, _state = self._flow().authorization_url(access_type="offline", prompt="consent")
        logger.info(f"Generated authorization URL with scopes: {self.settings.SCOPES}")
        return url

    def exchange_code(self, code: str) -> OAuthTokens:
        """Exchanges an authorization code for tokens. Raises on any provider error."""
        flow = self._flow()
        flow.fetch_token(code=code)
        creds = flow.credentials
        if not creds or not creds.token:
            raise ValueError("Could not obtain valid tokens from Google.")
        logger.info(f"Received tokens from Google (refresh token issued: {bool(creds.refresh_token)})")
        return self._tokens_from_credentials(creds)

    def fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        """Returns the OAuth2 userinfo document (email, name, picture...)."""
        creds = GoogleCredentials(token=access_token)
        service = build("oauth2", "v2", credentials=creds, cache_discovery=False)
        return service.userinfo().get().execute()

    def refresh(self, refresh_token: str) -> OAuthTokens:
        """
        Mints a new access token from a refresh token.

        Raises:
            google.auth.exceptions.RefreshError: the grant was rejected
                (revoked, expired or invalid refresh token).
            google.auth.exceptions.TransportError: Google could not be reached.
        """
        creds = GoogleCredentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.settings.TOKEN_URI,
            client_id=self.settings.GOOGLE_CLIENT_ID,
            client_secret=self.settings.GOOGLE_CLIENT_SECRET,
        )
        creds.refresh(GoogleAuthRequest())
        tokens = self._tokens_from_credentials(creds)
        # Google does not rotate refresh tokens on this grant
        tokens.refresh_token = tokens.refresh_token or refresh_token
        logger.info("Access token refreshed")
        return tokens

    def revoke(self, token: str) -> None:
        response = requests.post(
            self.settings.REVOKE_URI,
            params={"token": token},
            headers={"content-type": "application/x-www-form-urlencoded"},
            timeout=10,
        )
        response.raise_for_status()
