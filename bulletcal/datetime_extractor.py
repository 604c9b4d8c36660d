"""
Date/time phrase extraction for to-do sentences.
Supports FixedPhraseExtractor (offline) and DateparserExtractor (dateparser).

Extractors report every phrase they recognize, in order of appearance,
and resolve only the first one. When nothing is found they return an
empty DateExtraction; they never substitute the reference instant.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Optional, Union

import dateparser
from dateparser.search import search_dates
from dateutil import tz as dateutil_tz

from bulletcal.event_models import DateExtraction
from bulletcal.logging_helper import Log
from bulletcal.settings_manager import SettingsSchema, get_prefer_dates_from

PhraseValue = Union[datetime, Callable[[datetime], datetime]]


def local_now() -> datetime:
    """Current time in the system timezone, without microseconds."""
    return datetime.now(dateutil_tz.tzlocal()).replace(microsecond=0)


class DateTimeExtractor(ABC):
    """Abstract base class for date/time extractors."""

    @abstractmethod
    def extract(self, sentence: str, reference: datetime) -> DateExtraction:
        """
        Find date/time phrases and resolve the first one.

        Args:
            sentence: Free-text input
            reference: Instant that relative phrases are resolved against

        Returns:
            DateExtraction (empty if no phrase was found)
        """
        pass


class FixedPhraseExtractor(DateTimeExtractor):
    """
    Extractor backed by a fixed phrase table, for offline use and tests.
    Values are either absolute datetimes or callables taking the reference.
    """

    def __init__(self, phrases: Optional[Dict[str, PhraseValue]] = None):
        self.phrases = dict(phrases or {})

    def extract(self, sentence: str, reference: datetime) -> DateExtraction:
        found = []
        for phrase in self.phrases:
            if not phrase:
                continue
            position = sentence.find(phrase)
            if position >= 0:
                found.append((position, phrase))

        if not found:
            return DateExtraction.empty()

        found.sort(key=lambda item: item[0])
        first = self.phrases[found[0][1]]
        resolved = first(reference) if callable(first) else first
        return DateExtraction(
            literals=tuple(phrase for _, phrase in found),
            first_resolved=resolved,
        )


class DateparserExtractor(DateTimeExtractor):
    """dateparser-backed extractor using search_dates over the whole sentence."""

    def __init__(self, prefer_dates_from: str = "future", languages=("en",)):
        self.prefer_dates_from = prefer_dates_from
        self.languages = list(languages)

    def _settings(self, reference: datetime) -> dict:
        # dateparser works on naive wall-clock time; the zone is re-attached afterwards
        return {
            "RELATIVE_BASE": reference.replace(tzinfo=None),
            "PREFER_DATES_FROM": self.prefer_dates_from,
            "RETURN_AS_TIMEZONE_AWARE": False,
        }

    def extract(self, sentence: str, reference: datetime) -> DateExtraction:
        if not sentence or not sentence.strip():
            return DateExtraction.empty()

        try:
            matches = search_dates(
                sentence,
                languages=self.languages,
                settings=self._settings(reference),
            )
        except Exception as e:
            Log.warn(f"Date search failed for '{sentence}': {e}")
            Log.kv({"stage": "datetime", "result": "failed", "error": str(e)})
            return DateExtraction.empty()

        if not matches:
            return DateExtraction.empty()

        literals = tuple(text for text, _ in matches)
        resolved = self._resolve(literals[0], reference) or matches[0][1]
        if resolved is not None:
            if resolved.tzinfo is None:
                resolved = resolved.replace(tzinfo=reference.tzinfo)
            if resolved.microsecond != 0:
                resolved = resolved.replace(microsecond=0)

        Log.info(f"Date phrases found: {list(literals)} -> {resolved}")
        return DateExtraction(literals=literals, first_resolved=resolved)

    def _resolve(self, literal: str, reference: datetime) -> Optional[datetime]:
        """
        Parse the matched phrase on its own. search_dates can mis-resolve a
        phrase it found correctly ("at 7 am" -> midnight a month later).
        """
        try:
            return dateparser.parse(literal, languages=self.languages,
                                    settings=self._settings(reference))
        except Exception as e:
            Log.warn(f"Date parse failed for '{literal}': {e}")
            return None


def get_datetime_extractor(settings: Optional[SettingsSchema] = None) -> DateTimeExtractor:
    """
    Factory function to get the appropriate date/time extractor.
    Uses dateparser unless BULLETCAL_OFFLINE is set.

    Returns:
        DateTimeExtractor instance
    """
    if os.getenv("BULLETCAL_OFFLINE"):
        Log.info("BULLETCAL_OFFLINE flag set - using empty fixed-phrase extractor")
        return FixedPhraseExtractor()

    prefer = get_prefer_dates_from(settings)
    Log.info(f"Using dateparser extractor (prefer dates from {prefer})")
    return DateparserExtractor(prefer_dates_from=prefer)
