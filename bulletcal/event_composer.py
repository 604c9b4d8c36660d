"""
Event composer for turning a to-do sentence into a ParsedEvent.
Runs the entity tagger, date/time extractor and conferencing detector over
the same sentence, then derives the title by removing every recognized
span from the sentence.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from bulletcal.datetime_extractor import DateTimeExtractor, get_datetime_extractor, local_now
from bulletcal.entity_tagger import EntityTagger, get_entity_tagger
from bulletcal.event_models import EntityKind, ParsedEvent
from bulletcal.logging_helper import Log
from bulletcal.settings_manager import MISSING_DATE_POLICIES, get_missing_date_policy, load_settings
from bulletcal.title_cleaner import capitalize_first, remove_all, remove_connectives, strip_outer_commas
from bulletcal.zoom_detector import ZOOM_MARKER, detect_conferencing, strip_conferencing_phrases

LOCATION_KINDS = (EntityKind.PLACE_NAME, EntityKind.ORGANIZATION_NAME)


class EventComposer:
    """
    Combines the extractors into a single ParsedEvent per sentence.

    missing_date_policy decides date_time when no phrase resolves:
    "reference" uses the reference instant, "absent" leaves it None.
    """

    def __init__(
        self,
        tagger: EntityTagger,
        extractor: DateTimeExtractor,
        clock: Optional[Callable[[], datetime]] = None,
        missing_date_policy: str = "reference",
    ):
        if missing_date_policy not in MISSING_DATE_POLICIES:
            raise ValueError(f"Invalid missing date policy: {missing_date_policy}")
        self.tagger = tagger
        self.extractor = extractor
        self.clock = clock or local_now
        self.missing_date_policy = missing_date_policy

    def compose(self, sentence: str, reference: Optional[datetime] = None) -> ParsedEvent:
        """
        Extract a structured event from one sentence.

        Args:
            sentence: Free-text to-do item
            reference: Instant relative phrases resolve against (default: clock())

        Returns:
            ParsedEvent (never raises for string input)
        """
        if reference is None:
            reference = self.clock()

        Log.section("Event Composer")
        Log.info(f"Composing event from: {sentence!r}")

        people: List[str] = []
        locations: List[str] = []
        for span in self.tagger.tag(sentence):
            if span.kind == EntityKind.PERSONAL_NAME:
                people.append(span.text)
            elif span.kind in LOCATION_KINDS:
                locations.append(span.text)

        dates = self.extractor.extract(sentence, reference)
        date_literal = dates.first_literal

        title = remove_all(sentence, people)
        if date_literal:
            title = remove_all(title, [date_literal])
        title = remove_all(title, locations)
        title = remove_connectives(title)

        zoom_link = None
        if detect_conferencing(sentence):
            zoom_link = ZOOM_MARKER
            title = strip_conferencing_phrases(title)

        title = capitalize_first(strip_outer_commas(title))

        date_time = dates.first_resolved
        if date_time is None and self.missing_date_policy == "reference":
            date_time = reference

        event = ParsedEvent(
            title=title or None,
            date_time=date_time,
            people=", ".join(people),
            location=", ".join(locations),
            zoom_link=zoom_link,
            source_text=sentence,
        )

        Log.kv({
            "stage": "compose",
            "title": event.title,
            "date_literal": date_literal,
            "date_time": event.date_time.isoformat() if event.date_time else None,
            "people": event.people,
            "location": event.location,
            "zoom": event.zoom_link is not None,
        })
        return event

    def compose_all(
        self,
        sentences: Sequence[str],
        reference: Optional[datetime] = None,
        max_workers: Optional[int] = None,
    ) -> List[ParsedEvent]:
        """
        Compose one event per sentence, preserving input order.
        All sentences share one reference instant. With max_workers > 1
        sentences are composed in a thread pool.
        """
        if reference is None:
            reference = self.clock()

        if not max_workers or max_workers <= 1 or len(sentences) <= 1:
            return [self.compose(sentence, reference) for sentence in sentences]

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(lambda s: self.compose(s, reference), sentences))


_default_composer: Optional[EventComposer] = None
_default_composer_lock = threading.Lock()


def get_default_composer() -> EventComposer:
    """Build (once) a composer from the configured tagger and extractor."""
    global _default_composer
    with _default_composer_lock:
        if _default_composer is None:
            settings = load_settings()
            _default_composer = EventComposer(
                tagger=get_entity_tagger(settings),
                extractor=get_datetime_extractor(settings),
                missing_date_policy=get_missing_date_policy(settings),
            )
        return _default_composer


def parse_event(sentence: str, reference: Optional[datetime] = None) -> ParsedEvent:
    return get_default_composer().compose(sentence, reference)


def parse_all_events(sentences: Sequence[str], reference: Optional[datetime] = None) -> List[ParsedEvent]:
    return get_default_composer().compose_all(sentences, reference)
