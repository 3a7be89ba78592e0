# calendar_bridge/calendar/crud.py
from sqlalchemy.orm import Session
from typing import Optional
import datetime
import logging

from .models import CalendarEvent

logger = logging.getLogger(__name__)


def get_mirrored_event(db: Session, user_id: int, google_event_id: str) -> Optional[CalendarEvent]:
    # Attendees see the same Google event id in their own calendars
    return db.query(CalendarEvent).filter(
        CalendarEvent.user_id == user_id,
        CalendarEvent.google_event_id == google_event_id,
    ).first()


def save_mirrored_event(
    db: Session,
    *,
    user_id: int,
    google_event_id: str,
    summary: Optional[str],
    start_time: Optional[datetime.datetime],
    end_time: Optional[datetime.datetime],
) -> CalendarEvent:
    event = get_mirrored_event(db, user_id, google_event_id)
    if event is None:
        event = CalendarEvent(user_id=user_id, google_event_id=google_event_id)
        db.add(event)
    event.summary = summary
    event.start_time = start_time
    event.end_time = end_time
    try:
        db.commit()
        db.refresh(event)
        return event
    except Exception as e:
        logger.error(f"Failed to mirror event {google_event_id}: {e}", exc_info=True)
        db.rollback()
        raise


def delete_mirrored_event(db: Session, user_id: int, google_event_id: str) -> bool:
    event = get_mirrored_event(db, user_id, google_event_id)
    if event is None:
        return False
    try:
        db.delete(event)
        db.commit()
        return True
    except Exception as e:
        logger.error(f"Failed to remove mirrored event {google_event_id}: {e}", exc_info=True)
        db.rollback()
        raise
