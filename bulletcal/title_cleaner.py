"""
Text cleanup rules for deriving an event title from what is left of a
sentence after recognized spans are removed.
"""

import re
from typing import Iterable

CONNECTIVES = (" with ", " at ")

_OUTER_COMMAS = re.compile(r"^\s*,+|,+\s*$")


def remove_all(text: str, fragments: Iterable[str]) -> str:
    """Remove every literal occurrence of each fragment, in order."""
    for fragment in fragments:
        if fragment:
            text = text.replace(fragment, "")
    return text


def remove_connectives(text: str) -> str:
    return remove_all(text, CONNECTIVES)


def strip_outer_commas(text: str) -> str:
    """
    Strip leading/trailing runs of commas and whitespace.

    ", , hello, " -> "hello"
    """
    text = text.strip()
    while True:
        stripped = _OUTER_COMMAS.sub("", text).strip()
        if stripped == text:
            return stripped
        text = stripped


def capitalize_first(text: str) -> str:
    """Uppercase the first character only (not a title-case)."""
    return text[:1].upper() + text[1:]
