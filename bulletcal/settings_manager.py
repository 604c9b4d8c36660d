"""
Application settings management for user preferences.

Tracks the preferred calendar store, the spaCy model used for entity
tagging, date parsing preferences and the default event duration.
Settings are persisted to ~/.config/bulletcal/settings.json (directory
overridable with BULLETCAL_CONFIG_DIR) so choices survive across runs.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional, TypedDict

from bulletcal.logging_helper import Log

CalendarPreference = Literal["ics", "google", "memory"]
DatePreference = Literal["future", "past", "current_period"]
MissingDatePolicy = Literal["reference", "absent"]

CALENDAR_CHOICES = ("ics", "google", "memory")
DATE_PREFERENCE_CHOICES = ("future", "past", "current_period")
MISSING_DATE_POLICIES = ("reference", "absent")


class SettingsSchema(TypedDict, total=False):
    preferred_calendar: CalendarPreference
    spacy_model: str
    prefer_dates_from: DatePreference
    missing_date_policy: MissingDatePolicy
    event_duration_minutes: int
    ics_output_dir: str


DEFAULT_SETTINGS: SettingsSchema = {
    "preferred_calendar": "ics",
    "spacy_model": "en_core_web_sm",
    "prefer_dates_from": "future",
    "missing_date_policy": "reference",
    "event_duration_minutes": 60,
    "ics_output_dir": "",
}


def settings_dir() -> Path:
    configured = os.environ.get("BULLETCAL_CONFIG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".config" / "bulletcal"


def settings_file() -> Path:
    return settings_dir() / "settings.json"


def _ensure_settings_dir() -> None:
    try:
        settings_dir().mkdir(parents=True, exist_ok=True)
    except OSError as err:
        Log.warn(f"Unable to create settings directory {settings_dir()}: {err}")


def load_settings() -> SettingsSchema:
    """
    Load settings from disk, falling back to defaults if anything fails.
    """
    path = settings_file()
    if not path.exists():
        return DEFAULT_SETTINGS.copy()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Settings data is not a JSON object")
    except (OSError, ValueError) as err:
        Log.warn(f"Failed to read settings file ({path}): {err}")
        return DEFAULT_SETTINGS.copy()

    merged: SettingsSchema = DEFAULT_SETTINGS.copy()
    # Merge only known keys
    for key in DEFAULT_SETTINGS:
        if key in data:
            merged[key] = data[key]  # type: ignore[literal-required]
    return merged


def save_settings(settings: SettingsSchema) -> None:
    """
    Persist settings to disk.
    """
    _ensure_settings_dir()
    try:
        settings_file().write_text(
            json.dumps(settings, indent=2, sort_keys=True),
            encoding="utf-8",
        )
    except OSError as err:
        Log.warn(f"Failed to write settings file ({settings_file()}): {err}")


def _choice(settings: SettingsSchema, key: str, choices) -> str:
    value = settings.get(key, DEFAULT_SETTINGS[key])
    if value not in choices:
        Log.warn(f"Invalid {key} value '{value}', defaulting to {DEFAULT_SETTINGS[key]}")
        value = DEFAULT_SETTINGS[key]
    return value


def get_preferred_calendar(settings: Optional[SettingsSchema] = None) -> CalendarPreference:
    return _choice(settings or load_settings(), "preferred_calendar", CALENDAR_CHOICES)


def get_prefer_dates_from(settings: Optional[SettingsSchema] = None) -> DatePreference:
    return _choice(settings or load_settings(), "prefer_dates_from", DATE_PREFERENCE_CHOICES)


def get_missing_date_policy(settings: Optional[SettingsSchema] = None) -> MissingDatePolicy:
    return _choice(settings or load_settings(), "missing_date_policy", MISSING_DATE_POLICIES)


def get_spacy_model(settings: Optional[SettingsSchema] = None) -> str:
    settings = settings or load_settings()
    model = settings.get("spacy_model")
    if not isinstance(model, str) or not model.strip():
        Log.warn(f"Invalid spacy_model value '{model}', defaulting to {DEFAULT_SETTINGS['spacy_model']}")
        return DEFAULT_SETTINGS["spacy_model"]
    return model


def get_event_duration_minutes(settings: Optional[SettingsSchema] = None) -> int:
    settings = settings or load_settings()
    minutes = settings.get("event_duration_minutes")
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
        Log.warn(f"Invalid event_duration_minutes value '{minutes}', defaulting to 60")
        return DEFAULT_SETTINGS["event_duration_minutes"]
    return minutes


def get_ics_output_dir(settings: Optional[SettingsSchema] = None) -> Path:
    settings = settings or load_settings()
    configured = settings.get("ics_output_dir") or ""
    if configured:
        return Path(configured).expanduser()
    return Path.home() / "Downloads"


def set_preferred_calendar(value: CalendarPreference) -> None:
    if value not in CALENDAR_CHOICES:
        raise ValueError(f"Invalid calendar preference: {value}")
    settings = load_settings()
    settings["preferred_calendar"] = value
    save_settings(settings)
    Log.info(f"Saved preferred calendar setting: {value}")


def set_missing_date_policy(value: MissingDatePolicy) -> None:
    if value not in MISSING_DATE_POLICIES:
        raise ValueError(f"Invalid missing date policy: {value}")
    settings = load_settings()
    settings["missing_date_policy"] = value
    save_settings(settings)
    Log.info(f"Saved missing date policy setting: {value}")
