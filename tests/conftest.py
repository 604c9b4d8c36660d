"""
Shared pytest fixtures.
"""

from datetime import datetime, timedelta

import pytest
from dateutil import tz as dateutil_tz

from bulletcal.datetime_extractor import FixedPhraseExtractor
from bulletcal.entity_tagger import GazetteerEntityTagger
from bulletcal.event_composer import EventComposer
from bulletcal.event_models import EntityKind
from bulletcal.logging_helper import reset_log_file

REFERENCE = datetime(2024, 6, 26, 9, 30, tzinfo=dateutil_tz.gettz("Australia/Sydney"))


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep logs and settings out of the user's home directory."""
    monkeypatch.setenv("BULLETCAL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("BULLETCAL_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("BULLETCAL_QUIET", "1")
    monkeypatch.delenv("USE_GOOGLE_CALENDAR", raising=False)
    monkeypatch.delenv("BULLETCAL_OFFLINE", raising=False)
    reset_log_file()
    yield
    reset_log_file()


@pytest.fixture
def reference():
    return REFERENCE


@pytest.fixture
def gazetteer():
    return GazetteerEntityTagger({
        "Patrick": EntityKind.PERSONAL_NAME,
        "Michelle": EntityKind.PERSONAL_NAME,
        "Fairwood": EntityKind.PLACE_NAME,
        "Google": EntityKind.ORGANIZATION_NAME,
        "Sydney": EntityKind.PLACE_NAME,
        "Monday": EntityKind.OTHER,
    })


@pytest.fixture
def phrases():
    return FixedPhraseExtractor({
        "4pm": lambda ref: ref.replace(hour=16, minute=0, second=0),
        "8 pm": lambda ref: ref.replace(hour=20, minute=0, second=0),
        "7 am": lambda ref: (ref + timedelta(days=1)).replace(hour=7, minute=0, second=0),
        "10 pm": lambda ref: ref.replace(hour=22, minute=0, second=0),
    })


@pytest.fixture
def composer(gazetteer, phrases):
    return EventComposer(gazetteer, phrases, clock=lambda: REFERENCE)
