"""
Tests for the entity tagger and date/time extractor adapters.
"""

from datetime import datetime, timedelta

import pytest
import spacy

from bulletcal.datetime_extractor import (
    DateparserExtractor,
    FixedPhraseExtractor,
    get_datetime_extractor,
)
from bulletcal.entity_tagger import (
    GazetteerEntityTagger,
    SpacyEntityTagger,
    get_entity_tagger,
)
from bulletcal.event_models import DateExtraction, EntityKind, EntitySpan


@pytest.fixture
def ruler_nlp():
    """Blank English pipeline with a rule-based entity recognizer."""
    nlp = spacy.blank("en")
    ruler = nlp.add_pipe("entity_ruler")
    ruler.add_patterns([
        {"label": "PERSON", "pattern": "Patrick"},
        {"label": "PERSON", "pattern": [{"LOWER": "mary"}, {"LOWER": "jane"}]},
        {"label": "GPE", "pattern": "Sydney"},
        {"label": "FAC", "pattern": "Fairwood"},
        {"label": "ORG", "pattern": "Google"},
        {"label": "DATE", "pattern": "Monday"},
    ])
    return nlp


class TestSpacyEntityTagger:

    def test_label_mapping_and_order(self, ruler_nlp):
        tagger = SpacyEntityTagger(nlp=ruler_nlp)
        spans = tagger.tag("Lunch with Patrick at Google in Sydney on Monday")

        assert spans == [
            EntitySpan(EntityKind.PERSONAL_NAME, "Patrick"),
            EntitySpan(EntityKind.ORGANIZATION_NAME, "Google"),
            EntitySpan(EntityKind.PLACE_NAME, "Sydney"),
            EntitySpan(EntityKind.OTHER, "Monday"),
        ]

    def test_multi_token_name_is_one_span(self, ruler_nlp):
        tagger = SpacyEntityTagger(nlp=ruler_nlp)
        spans = tagger.tag("Coffee with Mary Jane")
        assert spans == [EntitySpan(EntityKind.PERSONAL_NAME, "Mary Jane")]

    def test_facility_is_a_place(self, ruler_nlp):
        tagger = SpacyEntityTagger(nlp=ruler_nlp)
        assert tagger.tag("Dinner at Fairwood") == [EntitySpan(EntityKind.PLACE_NAME, "Fairwood")]

    def test_blank_input(self, ruler_nlp):
        assert SpacyEntityTagger(nlp=ruler_nlp).tag("   ") == []

    def test_missing_model_falls_back_to_no_entities(self):
        tagger = SpacyEntityTagger(model_name="bulletcal_model_that_does_not_exist")
        assert tagger.tag("Dinner with Michelle") == []

    def test_text_over_max_length_yields_no_entities(self):
        tagger = SpacyEntityTagger(nlp=spacy.blank("en"))
        assert tagger.tag("word " * 250_000) == []


class TestGazetteerEntityTagger:

    def test_whole_word_matches_only(self):
        tagger = GazetteerEntityTagger({"Al": EntityKind.PERSONAL_NAME})
        assert tagger.tag("Also call Al") == [EntitySpan(EntityKind.PERSONAL_NAME, "Al")]

    def test_longest_match_wins(self):
        tagger = GazetteerEntityTagger({
            "New York": EntityKind.PLACE_NAME,
            "York": EntityKind.PLACE_NAME,
        })
        assert tagger.tag("Flight to New York") == [EntitySpan(EntityKind.PLACE_NAME, "New York")]

    def test_duplicates_kept_in_order(self):
        tagger = GazetteerEntityTagger({
            "Bob": EntityKind.PERSONAL_NAME,
            "Acme": EntityKind.ORGANIZATION_NAME,
        })
        assert [s.text for s in tagger.tag("Bob at Acme, then Bob")] == ["Bob", "Acme", "Bob"]


class TestFixedPhraseExtractor:

    def test_literals_in_order_of_appearance(self, reference):
        extractor = FixedPhraseExtractor({
            "5pm": lambda ref: ref.replace(hour=17),
            "today": lambda ref: ref,
        })
        result = extractor.extract("Gym today, 5pm", reference)

        assert result.literals == ("today", "5pm")
        assert result.first_literal == "today"
        assert result.first_resolved == reference

    def test_absolute_values(self, reference):
        fixed = datetime(2024, 7, 1, 10, 0)
        extractor = FixedPhraseExtractor({"July 1": fixed})
        assert extractor.extract("Dentist July 1", reference).first_resolved == fixed

    def test_nothing_found(self, reference):
        result = FixedPhraseExtractor({"4pm": reference}).extract("Buy groceries", reference)
        assert result == DateExtraction.empty()
        assert not result.found
        assert result.first_literal is None


class TestDateparserExtractor:

    def test_time_phrase_resolved_against_reference(self, reference):
        result = DateparserExtractor().extract("Run code check at 7 am", reference)

        assert result.found
        assert "7 am" in result.first_literal
        assert result.first_resolved.date() == reference.date() + timedelta(days=1)
        assert result.first_resolved.hour == 7
        assert result.first_resolved.minute == 0
        assert result.first_resolved.tzinfo == reference.tzinfo

    def test_no_phrase_signals_absence(self, reference):
        result = DateparserExtractor().extract("Buy groceries", reference)
        assert not result.found
        assert result.first_resolved is None

    def test_blank_sentence(self, reference):
        assert DateparserExtractor().extract("", reference) == DateExtraction.empty()

    def test_parser_errors_become_empty(self, reference, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("bulletcal.datetime_extractor.search_dates", explode)
        assert DateparserExtractor().extract("Lunch at noon", reference) == DateExtraction.empty()


class TestFactories:

    def test_offline_flag(self, monkeypatch):
        monkeypatch.setenv("BULLETCAL_OFFLINE", "1")
        assert isinstance(get_entity_tagger(), GazetteerEntityTagger)
        assert isinstance(get_datetime_extractor(), FixedPhraseExtractor)

    def test_settings_drive_adapters(self):
        settings = {"spacy_model": "en_core_web_md", "prefer_dates_from": "past"}
        tagger = get_entity_tagger(settings)
        extractor = get_datetime_extractor(settings)

        assert isinstance(tagger, SpacyEntityTagger)
        assert tagger.model_name == "en_core_web_md"
        assert isinstance(extractor, DateparserExtractor)
        assert extractor.prefer_dates_from == "past"
