# calendar_bridge/client/api.py
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000"


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class SessionExpiredError(ApiError):
    """The backend answered 401; the user has to sign in again."""


def parse_auth_redirect(url: str) -> str:
    """
    Reads the email out of the URL the OAuth callback redirected the browser to.

    Raises:
        ApiError: the redirect reports a failed sign-in or carries no email.
    """
    params = parse_qs(urlparse(url).query)
    if params.get("auth-error"):
        message = params.get("error", ["Authentication failed"])[0]
        raise ApiError(401, message)
    email = params.get("email", [None])[0]
    if not params.get("auth-success") or not email:
        raise ApiError(400, "Not a sign-in redirect URL")
    return email


class CalendarApiClient:
    """HTTP client for the calendar backend."""

    def __init__(self, base_url: str = DEFAULT_API_URL, session: Optional[requests.Session] = None, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise ApiError(0, f"Backend unreachable: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            if response.status_code == 401:
                raise SessionExpiredError(401, str(detail))
            raise ApiError(response.status_code, str(detail))
        return response.json() if response.content else None

    def get_auth_url(self) -> str:
        return self._request("GET", "/api/auth/google")["url"]

    def check(self, email: str) -> bool:
        return bool(self._request("GET", "/api/auth/check", params={"email": email}).get("authenticated"))

    def logout(self, email: str) -> None:
        self._request("POST", "/api/auth/logout", json={"email": email})

    def list_events(self, email: str) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/events", params={"email": email}) or []

    def create_event(
        self,
        email: str,
        summary: str,
        start_date_time: str,
        end_date_time: str,
        description: Optional[str] = None,
        attendees: Optional[List[str]] = None,
        time_zone: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "summary": summary,
            "startDateTime": start_date_time,
            "endDateTime": end_date_time,
            "description": description,
            "attendees": attendees,
            "timeZone": time_zone,
            "userEmail": email,
        }
        return self._request("POST", "/api/events", json={k: v for k, v in payload.items() if v is not None})

    def delete_event(self, email: str, event_id: str) -> None:
        self._request("DELETE", f"/api/events/{event_id}", params={"email": email})
