"""
Event data models for to-do sentence extraction.
Defines the entity/date values produced by the extractors and ParsedEvent
(the composed result).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class EntityKind(Enum):
    """Semantic kind of a tagged span."""
    PERSONAL_NAME = "personal_name"
    PLACE_NAME = "place_name"
    ORGANIZATION_NAME = "organization_name"
    OTHER = "other"


@dataclass(frozen=True)
class EntitySpan:
    """A contiguous substring of the input tagged with a semantic kind."""
    kind: EntityKind
    text: str


@dataclass(frozen=True)
class DateExtraction:
    """
    Date/time phrases found in a sentence.
    `literals` are in order of appearance; `first_resolved` is the absolute
    time of the first one (None if it could not be resolved).
    """
    literals: Tuple[str, ...] = ()
    first_resolved: Optional[datetime] = None

    @classmethod
    def empty(cls) -> "DateExtraction":
        return cls()

    @property
    def found(self) -> bool:
        return len(self.literals) > 0

    @property
    def first_literal(self) -> Optional[str]:
        return self.literals[0] if self.literals else None


@dataclass(frozen=True)
class ParsedEvent:
    """
    Structured event extracted from one to-do sentence.
    Built once by the EventComposer and never mutated afterwards.
    """
    title: Optional[str] = None
    date_time: Optional[datetime] = None
    people: str = ""
    location: str = ""
    zoom_link: Optional[str] = None
    source_text: str = field(default="", compare=False)

    def has_date(self) -> bool:
        return self.date_time is not None

    def calendar_title(self) -> str:
        """Title used when saving to a calendar: '<title> with <people>'."""
        if self.title and self.people:
            return f"{self.title} with {self.people}"
        return self.title or self.people or "Untitled event"

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'date_time': self.date_time.isoformat() if self.date_time else None,
            'people': self.people,
            'location': self.location,
            'zoom_link': self.zoom_link,
            'source_text': self.source_text,
        }
