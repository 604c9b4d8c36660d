"""
Conferencing keyword detection.
"""

import re

ZOOM_MARKER = "Zoom"

# Longer phrase first so "zoom meeting" never leaves a dangling "meeting"
_CONFERENCING_PHRASES = [
    re.compile(re.escape("zoom meeting"), re.IGNORECASE),
    re.compile(re.escape("zoom"), re.IGNORECASE),
]


def detect_conferencing(sentence: str) -> bool:
    return "zoom" in sentence.lower()


def strip_conferencing_phrases(text: str) -> str:
    for pattern in _CONFERENCING_PHRASES:
        text = pattern.sub("", text)
    return text
