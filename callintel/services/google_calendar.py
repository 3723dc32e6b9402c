# callintel/services/google_calendar.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from googleapiclient.discovery import build

from ..config import settings
from ..utils.dates import parse_iso, rfc3339
from .calendar_match import extract_meet_code

logger = logging.getLogger("calendar")


@dataclass
class CalendarEventData:
    id: str
    summary: str
    start_time: datetime
    end_time: datetime
    organizer: Optional[str]
    attendees: List[str] = field(default_factory=list)
    hangout_link: Optional[str] = None
    meet_code: Optional[str] = None
    attendees_omitted: bool = False


def _event_time(value: Dict[str, Any]) -> Optional[datetime]:
    return parse_iso((value or {}).get("dateTime") or (value or {}).get("date"))


def parse_event(item: Dict[str, Any]) -> Optional[CalendarEventData]:
    """
    Turn a Calendar API event into CalendarEventData.
    Only meetings with a Meet link or conference data are kept; None otherwise.
    """
    conference = item.get("conferenceData") or {}
    hangout = item.get("hangoutLink")
    if not hangout and not conference:
        return None

    start = _event_time(item.get("start"))
    end = _event_time(item.get("end"))
    if start is None or end is None:
        return None

    attendees = [
        a["email"]
        for a in item.get("attendees") or []
        if a.get("email") and not a.get("resource")
    ]

    meet_code = conference.get("conferenceId") or extract_meet_code(hangout)
    return CalendarEventData(
        id=item["id"],
        summary=item.get("summary") or "Untitled Meeting",
        start_time=start,
        end_time=end,
        organizer=(item.get("organizer") or {}).get("email"),
        attendees=attendees,
        hangout_link=hangout,
        meet_code=meet_code,
        attendees_omitted=bool(item.get("attendeesOmitted")),
    )


class CalendarClient:
    def __init__(self, creds=None, service=None):
        self._svc = service or build("calendar", "v3", credentials=creds, cache_discovery=False)

    def list_events(self, start: datetime, end: datetime,
                    max_results: Optional[int] = None) -> List[CalendarEventData]:
        events: List[CalendarEventData] = []
        page_token = None
        while True:
            resp = self._svc.events().list(
                calendarId="primary",
                timeMin=rfc3339(start),
                timeMax=rfc3339(end),
                singleEvents=True,
                orderBy="startTime",
                maxResults=max_results or settings.CALENDAR_MAX_RESULTS,
                pageToken=page_token,
            ).execute()
            for item in resp.get("items", []):
                ev = parse_event(item)
                if ev is not None:
                    events.append(ev)
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        logger.info(f"[calendar] {len(events)} meet events between {rfc3339(start)} and {rfc3339(end)}")
        return events
