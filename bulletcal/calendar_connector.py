"""
Calendar Connector for saving parsed events to a calendar store.
Supports ICS files (Apple Calendar, Outlook, ...), Google Calendar template
URLs, and an in-memory store for dry runs.
"""

import hashlib
import os
import re
import webbrowser
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import quote

import tzlocal
from dateutil import tz as dateutil_tz

from bulletcal.event_models import ParsedEvent
from bulletcal.logging_helper import Log
from bulletcal.settings_manager import (
    SettingsSchema,
    get_ics_output_dir,
    get_preferred_calendar,
    load_settings,
)

DEFAULT_EVENT_DURATION = timedelta(hours=1)


class CalendarStoreError(Exception):
    """Base class for calendar store failures."""


class CalendarPermissionError(CalendarStoreError):
    """The store refused write access."""


class CalendarSaveError(CalendarStoreError):
    """The store could not save the event."""


@dataclass
class SaveResult:
    """Outcome of saving one event."""
    title: str
    start: Optional[datetime]
    end: Optional[datetime]
    success: bool
    error: Optional[str] = None
    target: Optional[str] = None  # ICS path or URL

    @classmethod
    def failed(cls, title: str, error: str, start=None, end=None) -> "SaveResult":
        return cls(title=title, start=start, end=end, success=False, error=error)


def _tzinfo_to_iana(tzinfo) -> Optional[str]:
    """
    Attempt to extract an IANA timezone identifier from a tzinfo object.
    """
    if tzinfo is None:
        return None

    # zoneinfo exposes .key, pytz exposes .zone
    for attr in ("key", "zone", "name"):
        value = getattr(tzinfo, attr, None)
        if isinstance(value, str) and value:
            if "/" in value or value.upper() == "UTC":
                return value

    # Some tzinfo implementations need a concrete datetime for tzname()
    try:
        value = tzinfo.tzname(None)
    except Exception:
        return None
    if isinstance(value, str) and value and ("/" in value or value.upper() == "UTC"):
        return value

    return None


def _resolve_iana_timezone(start: datetime) -> Optional[str]:
    """
    Resolve an IANA timezone identifier for Google Calendar URLs.
    Prefers the event's tzinfo, then the system zone via tzlocal.
    """
    iana = _tzinfo_to_iana(start.tzinfo)
    if iana:
        return iana

    try:
        iana = tzlocal.get_localzone_name()
        if isinstance(iana, str) and iana:
            return iana
    except Exception as tz_err:
        # tzlocal raises its own error types for misconfigured hosts
        Log.warn(f"Failed to determine system IANA timezone: {tz_err}")

    return None


def _escape_ical_text(text: Optional[str]) -> str:
    """
    Escape text for iCalendar format (RFC5545).
    Escapes commas, semicolons, backslashes, and newlines.
    """
    if text is None:
        return ""

    text = text.replace('\\', '\\\\')
    text = text.replace(';', '\\;')
    text = text.replace(',', '\\,')
    text = text.replace('\n', '\\n')
    text = text.replace('\r', '')
    return text


def _fold_ical_line(line: str) -> str:
    """Fold a content line at 75 octets; continuation lines start with a space."""
    lines = []
    current_line = ""

    for char in line:
        test_line = current_line + char
        if len(test_line.encode('utf-8')) <= 75:
            current_line = test_line
        else:
            lines.append(current_line)
            current_line = " " + char

    if current_line:
        lines.append(current_line)

    return '\r\n'.join(lines)


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # Naive datetimes are treated as system local time
        dt = dt.replace(tzinfo=dateutil_tz.tzlocal())
    return dt.astimezone(dateutil_tz.tzutc())


def _format_utc_datetime(dt: datetime) -> str:
    """
    Format datetime as YYYYMMDDTHHMMSSZ (UTC), the form used by both
    iCalendar and Google Calendar URLs.
    """
    return _to_utc(dt).strftime('%Y%m%dT%H%M%SZ')


class CalendarStore(ABC):
    """Abstract base class for calendar stores."""

    name = "calendar"

    @abstractmethod
    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        location: str = "",
        notes: Optional[str] = None,
    ) -> SaveResult:
        """
        Create one event.

        Raises:
            CalendarPermissionError: write access denied
            CalendarSaveError: any other save failure
        """
        pass


class MemoryCalendarStore(CalendarStore):
    """Keeps created events in a list."""

    name = "memory"

    def __init__(self):
        self.events: List[dict] = []

    def create_event(self, title, start, end, location="", notes=None) -> SaveResult:
        self.events.append({
            'title': title,
            'start': start,
            'end': end,
            'location': location,
            'notes': notes,
        })
        return SaveResult(title=title, start=start, end=end, success=True,
                          target=f"memory:{len(self.events) - 1}")


class IcsCalendarStore(CalendarStore):
    """Writes one RFC5545 .ics file per event into output_dir."""

    name = "ics"

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def build_ics(self, title, start, end, location="", notes=None, uid=None) -> str:
        created_time = datetime.now(dateutil_tz.tzutc())
        if uid is None:
            uid_string = f"{created_time.isoformat()}_{title}_{start.isoformat()}"
            uid = hashlib.md5(uid_string.encode()).hexdigest() + "@bulletcal.local"

        ics_lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//bulletcal//bulletcal//EN",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"DTSTAMP:{_format_utc_datetime(created_time)}",
            f"DTSTART:{_format_utc_datetime(start)}",
            f"DTEND:{_format_utc_datetime(end)}",
            f"SUMMARY:{_escape_ical_text(title)}",
        ]
        if notes:
            ics_lines.append(f"DESCRIPTION:{_escape_ical_text(notes)}")
        if location:
            ics_lines.append(f"LOCATION:{_escape_ical_text(location)}")
        ics_lines.append("END:VEVENT")
        ics_lines.append("END:VCALENDAR")

        return '\r\n'.join(_fold_ical_line(line) for line in ics_lines) + '\r\n'

    def _ics_path(self, title: str, start: datetime) -> Path:
        safe_title = re.sub(r'[^\w\s-]', '', title)[:50]
        safe_title = re.sub(r'[-\s]+', '_', safe_title).strip('_') or "event"
        stamp = start.strftime("%Y%m%d_%H%M%S")
        path = self.output_dir / f"bulletcal_{safe_title}_{stamp}.ics"
        counter = 1
        while path.exists():
            path = self.output_dir / f"bulletcal_{safe_title}_{stamp}_{counter}.ics"
            counter += 1
        return path

    def create_event(self, title, start, end, location="", notes=None) -> SaveResult:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            ics_path = self._ics_path(title, start)
            ics_path.write_bytes(self.build_ics(title, start, end, location, notes).encode('utf-8'))
        except PermissionError as e:
            raise CalendarPermissionError(f"No write access to {self.output_dir}: {e}") from e
        except OSError as e:
            raise CalendarSaveError(f"Failed to write ICS file: {e}") from e

        Log.info(f"ICS file generated: {ics_path}")
        return SaveResult(title=title, start=start, end=end, success=True, target=str(ics_path))


class GoogleCalendarUrlStore(CalendarStore):
    """Builds pre-filled Google Calendar URLs, optionally opening them in a browser."""

    name = "google"

    def __init__(self, open_browser: bool = False):
        self.open_browser = open_browser

    def build_url(self, title, start, end, location="", notes=None) -> str:
        start_str = _format_utc_datetime(start)
        end_str = _format_utc_datetime(end)

        url = (
            "https://calendar.google.com/calendar/r/eventedit?action=TEMPLATE"
            f"&dates={start_str}%2F{end_str}&text={quote(title, safe='')}"
        )
        if notes:
            url += f"&details={quote(notes, safe='')}"
        if location:
            url += f"&location={quote(location, safe='')}"

        iana_timezone = _resolve_iana_timezone(start)
        if iana_timezone:
            url += f"&ctz={quote(iana_timezone, safe='')}"
        else:
            Log.warn("Unable to determine IANA timezone for Google Calendar URL; defaulting to Google account settings")
        return url

    def create_event(self, title, start, end, location="", notes=None) -> SaveResult:
        url = self.build_url(title, start, end, location, notes)
        Log.info(f"Generated Google Calendar URL: {url[:200]}")

        if self.open_browser:
            try:
                opened = webbrowser.open(url)
            except webbrowser.Error as e:
                raise CalendarSaveError(f"Failed to open browser: {e}") from e
            if not opened:
                raise CalendarSaveError("No browser available to open Google Calendar URL")

        return SaveResult(title=title, start=start, end=end, success=True, target=url)


def _event_notes(event: ParsedEvent) -> Optional[str]:
    lines = []
    if event.source_text:
        lines.append(event.source_text)
    if event.zoom_link:
        lines.append(f"Conferencing: {event.zoom_link}")
    return "\n".join(lines) or None


def save_event(
    event: ParsedEvent,
    store: CalendarStore,
    duration: timedelta = DEFAULT_EVENT_DURATION,
) -> SaveResult:
    """
    Save one parsed event. Store errors are reported in the SaveResult.
    """
    title = event.calendar_title()

    if event.date_time is None:
        Log.warn(f"Event '{title}' has no date/time - not saved")
        Log.kv({"stage": "calendar", "result": "failed", "reason": "missing_date", "event_title": title})
        return SaveResult.failed(title, "Event has no date/time")

    start = event.date_time
    try:
        end = start + duration
    except OverflowError as e:
        Log.error(f"Event '{title}' end time out of range: {e}")
        Log.kv({"stage": "calendar", "result": "failed", "reason": "end_out_of_range", "event_title": title})
        return SaveResult.failed(title, f"End time out of range: {e}", start=start)

    try:
        result = store.create_event(title, start, end, event.location, _event_notes(event))
    except CalendarStoreError as e:
        Log.error(f"Failed to save event '{title}': {e}")
        Log.kv({"stage": "calendar", "store": store.name, "result": "failed",
                "reason": type(e).__name__, "error": str(e)})
        return SaveResult.failed(title, str(e), start=start, end=end)

    Log.kv({"stage": "calendar", "store": store.name, "result": "success",
            "event_title": title, "target": result.target})
    return result


def save_events(
    events: Sequence[ParsedEvent],
    store: CalendarStore,
    duration: timedelta = DEFAULT_EVENT_DURATION,
) -> List[SaveResult]:
    """
    Save each event independently. One failure never stops the others.

    Returns:
        One SaveResult per event, in input order
    """
    Log.section("Calendar Connector")
    Log.info(f"Saving {len(events)} event(s) to {store.name} store")
    return [save_event(event, store, duration) for event in events]


def get_calendar_store(
    settings: Optional[SettingsSchema] = None,
    calendar_preference: Optional[str] = None,
) -> CalendarStore:
    """
    Pick the calendar store from an explicit preference, the
    USE_GOOGLE_CALENDAR environment variable, or the saved setting.
    """
    settings = settings or load_settings()
    if calendar_preference is None:
        if os.environ.get('USE_GOOGLE_CALENDAR', '').lower() in ('1', 'true', 'yes'):
            calendar_preference = "google"
        else:
            calendar_preference = get_preferred_calendar(settings)

    if calendar_preference == "google":
        return GoogleCalendarUrlStore(open_browser=True)
    if calendar_preference == "memory":
        return MemoryCalendarStore()
    if calendar_preference == "ics":
        return IcsCalendarStore(get_ics_output_dir(settings))
    raise ValueError(f"Invalid calendar preference: {calendar_preference}")
