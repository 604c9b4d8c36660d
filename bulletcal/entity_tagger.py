"""
Entity tagger interface for finding people, places and organizations.
Supports GazetteerEntityTagger (offline) and SpacyEntityTagger (spaCy NER).
"""

import os
import re
import string
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import spacy
from spacy.language import Language

from bulletcal.event_models import EntityKind, EntitySpan
from bulletcal.logging_helper import Log
from bulletcal.settings_manager import SettingsSchema, get_spacy_model

SPACY_LABELS = {
    "PERSON": EntityKind.PERSONAL_NAME,
    "GPE": EntityKind.PLACE_NAME,
    "LOC": EntityKind.PLACE_NAME,
    "FAC": EntityKind.PLACE_NAME,
    "ORG": EntityKind.ORGANIZATION_NAME,
}

_SPAN_EDGE_CHARS = string.whitespace + string.punctuation


class EntityTagger(ABC):
    """Abstract base class for entity taggers."""

    @abstractmethod
    def tag(self, sentence: str) -> List[EntitySpan]:
        """
        Tag named entities in a sentence.

        Args:
            sentence: Free-text input

        Returns:
            Spans in order of appearance, adjacent name tokens merged
        """
        pass


class GazetteerEntityTagger(EntityTagger):
    """
    Dictionary-backed tagger for offline use and tests.
    Matches every whole-word, case-sensitive occurrence of a known name.
    """

    def __init__(self, entries: Optional[Dict[str, EntityKind]] = None):
        self.entries = dict(entries or {})
        self._patterns = [
            (re.compile(r"(?<!\w)" + re.escape(text) + r"(?!\w)"), text, kind)
            for text, kind in self.entries.items()
            if text.strip()
        ]

    def tag(self, sentence: str) -> List[EntitySpan]:
        matches = []
        for pattern, text, kind in self._patterns:
            for match in pattern.finditer(sentence):
                matches.append((match.start(), match.end(), text, kind))

        # Leftmost first, longest wins on overlap
        matches.sort(key=lambda m: (m[0], -(m[1] - m[0])))
        spans = []
        last_end = -1
        for start, end, text, kind in matches:
            if start < last_end:
                continue
            spans.append(EntitySpan(kind=kind, text=text))
            last_end = end
        return spans


class SpacyEntityTagger(EntityTagger):
    """
    spaCy-backed tagger. The pipeline is loaded on first use.
    Falls back to a blank English pipeline (no entities) when the model
    is not installed.
    """

    def __init__(self, model_name: str = "en_core_web_sm", nlp: Optional[Language] = None):
        self.model_name = model_name
        self._nlp = nlp
        self._load_lock = threading.Lock()

    @property
    def nlp(self) -> Language:
        with self._load_lock:
            if self._nlp is None:
                try:
                    self._nlp = spacy.load(self.model_name)
                    Log.info(f"Loaded spaCy model: {self.model_name}")
                except OSError:
                    Log.warn(f"spaCy model {self.model_name} not found. Entity tagging disabled.")
                    Log.kv({"stage": "tagger", "result": "model_missing", "model": self.model_name})
                    self._nlp = spacy.blank("en")
        return self._nlp

    def tag(self, sentence: str) -> List[EntitySpan]:
        if not sentence or not sentence.strip():
            return []

        try:
            doc = self.nlp(sentence)
        except ValueError as e:
            # spaCy refuses text longer than nlp.max_length
            Log.warn(f"Entity tagging failed ({len(sentence)} chars): {e}")
            Log.kv({"stage": "tagger", "result": "failed", "error": str(e)})
            return []

        spans = []
        for ent in doc.ents:
            text = ent.text.strip(_SPAN_EDGE_CHARS)
            if not text:
                continue
            kind = SPACY_LABELS.get(ent.label_, EntityKind.OTHER)
            spans.append(EntitySpan(kind=kind, text=text))
        return spans


def get_entity_tagger(settings: Optional[SettingsSchema] = None) -> EntityTagger:
    """
    Factory function to get the appropriate entity tagger.
    Uses the spaCy tagger unless BULLETCAL_OFFLINE is set.

    Returns:
        EntityTagger instance
    """
    if os.getenv("BULLETCAL_OFFLINE"):
        Log.info("BULLETCAL_OFFLINE flag set - using empty gazetteer tagger")
        return GazetteerEntityTagger()

    model_name = get_spacy_model(settings)
    Log.info(f"Using spaCy entity tagger ({model_name})")
    return SpacyEntityTagger(model_name=model_name)
