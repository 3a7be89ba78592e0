# tests/conftest.py
import datetime
import itertools
import json
import threading
from typing import Any, Dict, Generator, List, Optional

import httplib2
import pytest
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from main import create_app
from calendar_bridge.auth.google_oauth import OAuthTokens
from calendar_bridge.calendar.schemas import EventRequest
from calendar_bridge.core.config import Settings
from calendar_bridge.core.database import Base, create_db_engine, init_db, make_session_factory
from calendar_bridge.core.timeutils import utcnow
from calendar_bridge.users.models import User

TEST_USER_EMAIL = "test@example.com"
TEST_REFRESH_TOKEN = "fake-refresh-token"
FRONTEND_URL = "http://localhost:5173"


def make_http_error(status: int, message: str = "error") -> HttpError:
    resp = httplib2.Response({"status": status})
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(resp, content)


class FakeOAuthClient:
    """Stands in for GoogleOAuthClient; records every provider call."""

    def __init__(self):
        self.exchanged_codes: List[str] = []
        self.refresh_calls: List[str] = []
        self.revoked: List[str] = []
        self.exchange_refresh_token: Optional[str] = "refresh-from-code"
        self.user_info: Dict[str, Any] = {"email": TEST_USER_EMAIL, "name": "Test User"}
        self.exchange_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self.revoke_error: Optional[Exception] = None
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def authorization_url(self) -> str:
        return "https://accounts.google.com/o/oauth2/auth?client_id=test-client-id&access_type=offline"

    def exchange_code(self, code: str) -> OAuthTokens:
        self.exchanged_codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return OAuthTokens(
            access_token="access-from-code",
            refresh_token=self.exchange_refresh_token,
            expiry=utcnow() + datetime.timedelta(hours=1),
        )

    def fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        return self.user_info

    def refresh(self, refresh_token: str) -> OAuthTokens:
        with self._lock:
            self.refresh_calls.append(refresh_token)
            n = next(self._counter)
        if self.refresh_error:
            raise self.refresh_error
        return OAuthTokens(
            access_token=f"refreshed-access-{n}",
            refresh_token=refresh_token,
            expiry=utcnow() + datetime.timedelta(hours=1),
        )

    def revoke(self, token: str) -> None:
        self.revoked.append(token)
        if self.revoke_error:
            raise self.revoke_error


class FakeCalendarService:
    """In-memory calendar with the GoogleCalendarService interface."""

    def __init__(self):
        self.user_email: Optional[str] = None
        self.events: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.error: Optional[Exception] = None
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.error:
            raise self.error

    def list_upcoming_events(self) -> List[Dict[str, Any]]:
        self._call("list")
        return sorted(self.events.values(), key=lambda e: e["start"]["dateTime"])[:10]

    def _to_event(self, event_id: str, event_data: EventRequest) -> Dict[str, Any]:
        event = {
            "id": event_id,
            "summary": event_data.summary,
            "start": {"dateTime": event_data.startDateTime, "timeZone": event_data.timeZone or "UTC"},
            "end": {"dateTime": event_data.endDateTime, "timeZone": event_data.timeZone or "UTC"},
        }
        if event_data.attendees:
            event["attendees"] = [{"email": email} for email in event_data.attendees]
        return event

    def create_event(self, event_data: EventRequest) -> Dict[str, Any]:
        self._call("create")
        event = self._to_event(f"evt{next(self._ids)}", event_data)
        self.events[event["id"]] = event
        return event

    def update_event(self, event_id: str, event_data: EventRequest) -> Dict[str, Any]:
        self._call("update")
        if event_id not in self.events:
            raise make_http_error(404, "Not Found")
        self.events[event_id] = self._to_event(event_id, event_data)
        return self.events[event_id]

    def delete_event(self, event_id: str) -> None:
        self._call("delete")
        if event_id not in self.events:
            raise make_http_error(404, "Not Found")
        del self.events[event_id]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        GOOGLE_CLIENT_ID="test-client-id",
        GOOGLE_CLIENT_SECRET="test-client-secret",
        GOOGLE_REDIRECT_URI="http://localhost:5000/api/auth/callback",
        DATABASE_URL="sqlite://",
        FRONTEND_URL=FRONTEND_URL,
    )


@pytest.fixture
def engine(settings: Settings):
    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    assert len(Base.metadata.tables) > 0
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    db = make_session_factory(engine)()
    yield db
    db.close()


@pytest.fixture
def fake_oauth() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest.fixture
def fake_calendar() -> FakeCalendarService:
    return FakeCalendarService()


@pytest.fixture
def app(settings, engine, fake_oauth, fake_calendar):
    def calendar_factory(user: User) -> FakeCalendarService:
        fake_calendar.user_email = user.email
        return fake_calendar

    return create_app(settings, engine=engine, oauth_client=fake_oauth, calendar_factory=calendar_factory)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(
        email: str = TEST_USER_EMAIL,
        access_token: Optional[str] = "valid-access-token",
        refresh_token: Optional[str] = TEST_REFRESH_TOKEN,
        expires_in: Optional[datetime.timedelta] = datetime.timedelta(hours=1),
    ) -> User:
        user = User(
            email=email,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=utcnow() + expires_in if expires_in is not None else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def reload_user(db_session: Session):
    """Reads the user back after an endpoint changed it in another session."""
    def _reload(email: str = TEST_USER_EMAIL) -> Optional[User]:
        db_session.expire_all()
        return db_session.query(User).filter(User.email == email).first()

    return _reload
