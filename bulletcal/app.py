"""
Main entry point: parse to-do sentences into events and optionally save
them to a calendar store.

    bulletcal "Dinner with Michelle, 8 pm at Fairwood" --save --calendar ics
"""

import argparse
import json
import os
import sys
from datetime import timedelta
from typing import List, Optional

from bulletcal.calendar_connector import SaveResult, get_calendar_store, save_events
from bulletcal.event_composer import get_default_composer
from bulletcal.event_models import ParsedEvent
from bulletcal.logging_helper import Log
from bulletcal.settings_manager import CALENDAR_CHOICES, get_event_duration_minutes, load_settings

SAMPLE_SENTENCES = [
    "Zoom meeting, run through presentation, 4pm with Patrick",
    "Dinner with Michelle, 8 pm at Fairwood",
    "Review exam 6, 10 pm",
    "Run code check at 7 am",
]


def format_event(event: ParsedEvent) -> str:
    date_text = event.date_time.strftime("%Y-%m-%d %H:%M %Z").strip() if event.date_time else "N/A"
    return "\n".join([
        f"Event title: {event.title or 'N/A'}",
        f"Date/Time: {date_text}",
        f"People: {event.people or 'N/A'}",
        f"Location: {event.location or 'N/A'}",
        f"Zoom link: {event.zoom_link or 'N/A'}",
        "---",
    ])


def format_save_result(result: SaveResult) -> str:
    if result.success:
        return f"Saved '{result.title}' -> {result.target}"
    return f"Failed to save '{result.title}': {result.error}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulletcal",
        description="Turn to-do sentences into calendar events.",
    )
    parser.add_argument("sentences", nargs="*",
                        help="Sentences to parse (default: built-in samples)")
    parser.add_argument("--save", action="store_true",
                        help="Save parsed events to a calendar store")
    parser.add_argument("--calendar", choices=CALENDAR_CHOICES,
                        help="Calendar store to save to (default: saved preference)")
    parser.add_argument("--json", action="store_true", help="Print events as JSON")
    parser.add_argument("--workers", type=int, default=1,
                        help="Compose sentences in a thread pool of this size")
    parser.add_argument("--verbose", action="store_true", help="Echo log lines to stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    if not args.verbose:
        os.environ.setdefault("BULLETCAL_QUIET", "1")

    Log.section("bulletcal")
    Log.info(f"Log file: {Log.get_log_path()}")

    sentences = args.sentences or SAMPLE_SENTENCES
    events = get_default_composer().compose_all(sentences, max_workers=args.workers)

    if args.json:
        print(json.dumps([event.to_dict() for event in events], indent=2))
    else:
        print(f"Events: {sentences}\n")
        for event in events:
            print(format_event(event))

    if not args.save:
        return 0

    settings = load_settings()
    store = get_calendar_store(settings, calendar_preference=args.calendar)
    duration = timedelta(minutes=get_event_duration_minutes(settings))
    results = save_events(events, store, duration)
    for result in results:
        print(format_save_result(result))

    return 0 if all(result.success for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
