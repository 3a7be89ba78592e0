# calendar_bridge/calendar/service.py
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build, Resource
import logging
from typing import Any, Callable, Dict, List, Optional
import datetime

from calendar_bridge.core.config import Settings
from calendar_bridge.core.timeutils import utcnow
from calendar_bridge.users.models import User
from .schemas import EventRequest

logger = logging.getLogger(__name__)


class GoogleCalendarService:
    """
    Proxies event operations to the user's primary Google Calendar.

    Provider failures surface as googleapiclient.errors.HttpError; translating
    them into HTTP responses is the router's job.
    """

    def __init__(self, access_token: str, user_email: str, default_time_zone: str = "UTC", page_size: int = 10):
        if not access_token:
            raise ValueError("An access token is required to initialize GoogleCalendarService")
        self.user_email = user_email
        self.default_time_zone = default_time_zone
        self.page_size = page_size
        creds = Credentials(token=access_token)
        self.service: Resource = build('calendar', 'v3', credentials=creds, cache_discovery=False)

    def list_upcoming_events(self, now: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
        """Returns the next page of single-occurrence events starting from now, ordered by start time."""
        time_min = (now or utcnow()).isoformat()
        logger.info(f"Fetching events for user {self.user_email} from {time_min}")
        events_result = self.service.events().list(
            calendarId='primary',
            timeMin=time_min,
            maxResults=self.page_size,
            singleEvents=True,
            orderBy='startTime'
        ).execute()
        items = events_result.get('items', [])
        logger.info(f"Found {len(items)} events")
        return items

    def create_event(self, event_data: EventRequest) -> Dict[str, Any]:
        body = self._build_event_body(event_data)
        logger.info(f"Creating event for user {self.user_email}: {body.get('summary')}")
        created_event = self.service.events().insert(
            calendarId='primary',
            sendUpdates=self._send_updates(event_data),
            body=body
        ).execute()
        logger.info(f"Event created: {created_event.get('id')}")
        return created_event

    def update_event(self, event_id: str, event_data: EventRequest) -> Dict[str, Any]:
        body = self._build_event_body(event_data)
        logger.info(f"Updating event {event_id} for user {self.user_email}")
        updated_event = self.service.events().update(
            calendarId='primary',
            eventId=event_id,
            sendUpdates=self._send_updates(event_data),
            body=body
        ).execute()
        logger.info(f"Event {event_id} updated successfully")
        return updated_event

    def delete_event(self, event_id: str) -> None:
        logger.info(f"Deleting event {event_id} for user {self.user_email}")
        self.service.events().delete(calendarId='primary', eventId=event_id).execute()
        logger.info(f"Event {event_id} deleted")

    def _build_event_body(self, event_data: EventRequest) -> Dict[str, Any]:
        time_zone = event_data.timeZone or self.default_time_zone
        body = {
            'summary': event_data.summary,
            'description': event_data.description,
            'start': {'dateTime': event_data.startDateTime, 'timeZone': time_zone},
            'end': {'dateTime': event_data.endDateTime, 'timeZone': time_zone},
            'attendees': [{'email': email} for email in event_data.attendees] if event_data.attendees else None,
        }
        return {k: v for k, v in body.items() if v is not None}

    @staticmethod
    def _send_updates(event_data: EventRequest) -> str:
        return 'all' if event_data.attendees else 'none'


CalendarServiceFactory = Callable[[User], GoogleCalendarService]


def calendar_service_factory(settings: Settings) -> CalendarServiceFactory:
    def _factory(user: User) -> GoogleCalendarService:
        return GoogleCalendarService(
            access_token=user.access_token,
            user_email=user.email,
            default_time_zone=settings.DEFAULT_TIME_ZONE,
            page_size=settings.EVENTS_PAGE_SIZE,
        )
    return _factory
