# calendar_bridge/calendar/schemas.py
import datetime
from typing import List, Optional

import pytz
from dateutil.parser import isoparse
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from calendar_bridge.core.timeutils import as_utc


def parse_event_time(value: str, time_zone: Optional[str] = None) -> datetime.datetime:
    """
    Parses an ISO 8601 date-time into an aware UTC datetime.

    Values without an offset are wall-clock times in `time_zone`, which is how
    Google reads them next to an event's timeZone. Without a zone they are UTC.
    """
    parsed = isoparse(value)
    if parsed.tzinfo is None and time_zone:
        parsed = pytz.timezone(time_zone).localize(parsed)
    return as_utc(parsed)


class EventRequest(BaseModel):
    summary: str = Field(..., min_length=1, description="Event title")
    description: Optional[str] = Field(None, description="Optional event description")
    startDateTime: str = Field(..., description="Start date-time in ISO 8601 format")
    endDateTime: str = Field(..., description="End date-time in ISO 8601 format")
    attendees: Optional[List[str]] = Field(None, description="Attendee email addresses")
    timeZone: Optional[str] = Field(
        None,
        description="IANA time zone (e.g. 'Europe/Berlin'); the server default is used when omitted"
    )
    # Identity fields are read by the auth gate, not by the calendar logic
    email: Optional[str] = None
    userEmail: Optional[str] = None

    @field_validator('startDateTime', 'endDateTime')
    @classmethod
    def must_be_iso_datetime(cls, v: str) -> str:
        try:
            parse_event_time(v)
        except (ValueError, OverflowError):
            raise ValueError(f"'{v}' is not a valid ISO 8601 date-time")
        return v

    @field_validator('timeZone')
    @classmethod
    def must_be_known_time_zone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown time zone '{v}'")
        return v

    @field_validator('attendees')
    @classmethod
    def strip_blank_attendees(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [email.strip() for email in v if email and email.strip()]

    @model_validator(mode='after')
    def end_after_start(self, info: ValidationInfo):
        # get_event_request() passes the server's default zone as context
        time_zone = self.timeZone or (info.context or {}).get("default_time_zone")
        if parse_event_time(self.startDateTime, time_zone) >= parse_event_time(self.endDateTime, time_zone):
            raise ValueError("endDateTime must be after startDateTime")
        return self


class DeleteEventResponse(BaseModel):
    success: bool = True
    message: str = "Event deleted successfully"
