# calendar_bridge/core/dependencies.py
from typing import Generator, Optional
import json
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from calendar_bridge.core.config import Settings
from calendar_bridge.core.database import session_scope
from calendar_bridge.core.exceptions import AuthError, AuthenticationRequired
from calendar_bridge.auth.google_oauth import GoogleOAuthClient
from calendar_bridge.auth.token_policy import TokenRefreshPolicy
from calendar_bridge.calendar.schemas import EventRequest
from calendar_bridge.calendar.service import GoogleCalendarService
from calendar_bridge.users import crud as users_crud
from calendar_bridge.users.models import User

logger = logging.getLogger(__name__)

# Everything below reads from app.state, which create_app() fills in.
# Tests build their own app with fakes instead of patching module globals.


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    with session_scope(request.app.state.session_factory) as db:
        yield db


def get_oauth_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.oauth_client


def get_token_policy(request: Request) -> TokenRefreshPolicy:
    return request.app.state.token_policy


async def get_identity(request: Request) -> Optional[str]:
    return await request.app.state.identity_resolver.resolve(request)


def get_current_user(
    email: Optional[str] = Depends(get_identity),
    db: Session = Depends(get_db),
    policy: TokenRefreshPolicy = Depends(get_token_policy),
) -> User:
    """Auth gate: the caller must name a known user whose tokens are (or can be made) valid."""
    if not email:
        logger.info("No email provided in request")
        raise AuthenticationRequired()
    try:
        user = users_crud.get_user_by_email(db, email)
        if user is None:
            logger.info(f"User not found: {email}")
        return policy.ensure_fresh(db, user)
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Auth gate error for {email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication failed")


def get_calendar_service(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> GoogleCalendarService:
    try:
        return request.app.state.calendar_service_factory(current_user)
    except Exception as e:
        logger.error(f"Failed to create calendar service for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create calendar service")


async def get_event_request(request: Request, settings: Settings = Depends(get_settings)) -> EventRequest:
    """
    Parses and validates an event body ahead of the auth gate.

    Endpoints list this before get_current_user, so a bad body answers 400
    without touching Google, not even for a token refresh.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else None
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": f"JSON decode error: {e}", "input": {}}]
        )
    if payload is None:
        raise RequestValidationError([{"type": "missing", "loc": ("body",), "msg": "Field required", "input": None}])
    try:
        event_data = EventRequest.model_validate(
            payload, context={"default_time_zone": settings.DEFAULT_TIME_ZONE}
        )
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)],
            body=payload,
        )
    event_data.timeZone = event_data.timeZone or settings.DEFAULT_TIME_ZONE
    return event_data
