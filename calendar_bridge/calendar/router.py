# calendar_bridge/calendar/router.py

from fastapi import APIRouter, Depends, status, Path, HTTPException
from typing import Any, Dict, List, NoReturn
import logging
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from . import crud, schemas
from .service import GoogleCalendarService
from calendar_bridge.core.dependencies import get_calendar_service, get_current_user, get_db, get_event_request
from calendar_bridge.users.models import User

router = APIRouter(
    prefix="/api/events",
    tags=["Events"],
)
logger = logging.getLogger(__name__)


def handle_google_api_error(e: HttpError, user_email: str, action: str, fallback_detail: str) -> NoReturn:
    """Maps a Google API HttpError onto the application's HTTP errors."""
    error_details = e.content.decode('utf-8', errors='replace') if e.content else str(e)
    status_code = e.resp.status if getattr(e, 'resp', None) is not None else 500
    logger.error(f"Google API error during '{action}' for user {user_email}: {status_code} - {error_details}", exc_info=True)

    if status_code == 401:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    if status_code == 403:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
    if status_code in (404, 410):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=fallback_detail)


def _mirror_event(db: Session, user: User, event: Dict[str, Any], event_data: schemas.EventRequest) -> None:
    event_id = event.get('id')
    if not event_id:
        return
    try:
        crud.save_mirrored_event(
            db,
            user_id=user.id,
            google_event_id=event_id,
            summary=event.get('summary', event_data.summary),
            start_time=schemas.parse_event_time(event_data.startDateTime, event_data.timeZone),
            end_time=schemas.parse_event_time(event_data.endDateTime, event_data.timeZone),
        )
    except Exception as e:
        # Google already holds the event; a stale mirror must not fail the request
        logger.error(f"Could not mirror event {event_id} for {user.email}: {e}")


@router.get("", response_model=List[Dict[str, Any]], summary="List upcoming events")
def list_events(calendar_service: GoogleCalendarService = Depends(get_calendar_service)):
    """Returns the next upcoming events from the user's primary calendar."""
    try:
        return calendar_service.list_upcoming_events()
    except HttpError as e:
        handle_google_api_error(e, calendar_service.user_email, "list_events", "Failed to fetch events")
    except Exception as e:
        logger.error(f"Unexpected error getting events for {calendar_service.user_email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch events")


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a new event"
)
def create_event(
    event_data: schemas.EventRequest = Depends(get_event_request),
    current_user: User = Depends(get_current_user),
    calendar_service: GoogleCalendarService = Depends(get_calendar_service),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Creates a new event in the user's primary Google Calendar."""
    try:
        created_event = calendar_service.create_event(event_data)
    except HttpError as e:
        handle_google_api_error(e, current_user.email, "create_event", "Failed to create event")
    except Exception as e:
        logger.error(f"Unexpected error creating event for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create event")

    _mirror_event(db, current_user, created_event, event_data)
    return created_event


@router.put("/{event_id}", summary="Update an existing event")
def update_event(
    event_id: str = Path(..., description="The ID of the event to update"),
    event_data: schemas.EventRequest = Depends(get_event_request),
    current_user: User = Depends(get_current_user),
    calendar_service: GoogleCalendarService = Depends(get_calendar_service),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Replaces an event in the user's primary Google Calendar."""
    try:
        updated_event = calendar_service.update_event(event_id, event_data)
    except HttpError as e:
        handle_google_api_error(e, current_user.email, f"update_event:{event_id}", "Failed to update event")
    except Exception as e:
        logger.error(f"Unexpected error updating event {event_id} for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update event")

    _mirror_event(db, current_user, updated_event, event_data)
    return updated_event


@router.delete("/{event_id}", response_model=schemas.DeleteEventResponse, summary="Delete an event")
def delete_event(
    event_id: str = Path(..., description="The ID of the event to delete"),
    current_user: User = Depends(get_current_user),
    calendar_service: GoogleCalendarService = Depends(get_calendar_service),
    db: Session = Depends(get_db),
):
    """Deletes an event from the user's primary Google Calendar."""
    try:
        calendar_service.delete_event(event_id)
    except HttpError as e:
        handle_google_api_error(e, current_user.email, f"delete_event:{event_id}", "Failed to delete event")
    except Exception as e:
        logger.error(f"Unexpected error deleting event {event_id} for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete event")

    try:
        crud.delete_mirrored_event(db, current_user.id, event_id)
    except Exception as e:
        logger.error(f"Could not remove mirrored event {event_id}: {e}")
    return schemas.DeleteEventResponse()
