"""
Delimited Field Tokenizer
=========================

Splits the free-form staff and theme fields carried by review records.

Contract:
    - Split on every character of the delimiter set.
    - Strip surrounding whitespace and collapse inner runs of whitespace.
    - Drop empty tokens.
    - Deduplicate within one field, keeping first-seen order.

Themes are normalised to lower case. Staff names are normalised to
"Capitalised" form (first letter upper, rest lower) so "ANNA" and "anna"
count as the same person.
"""

import re
from typing import Iterable, List, Optional

THEME_DELIMITERS = ",;|"
STAFF_DELIMITERS = ",;|&"

_WHITESPACE = re.compile(r"\s+")


def tokenize(value: Optional[str], delimiters: str) -> List[str]:
    """Split a delimited string into clean, unique tokens."""
    if not value or not value.strip():
        return []

    pattern = "[" + re.escape(delimiters) + "]"
    tokens: List[str] = []
    seen = set()
    for raw in re.split(pattern, value):
        token = _WHITESPACE.sub(" ", raw).strip()
        if not token or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def normalize_theme(theme: str) -> str:
    return theme.lower()


def normalize_staff_name(name: str) -> str:
    return name[:1].upper() + name[1:].lower()


def _unique(values: Iterable[str]) -> List[str]:
    result: List[str] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


def tokenize_themes(value: Optional[str]) -> List[str]:
    """Theme tokens for a review's theme field (lower-cased)."""
    return _unique(normalize_theme(t) for t in tokenize(value, THEME_DELIMITERS))


def tokenize_staff(value: Optional[str]) -> List[str]:
    """Staff names for a review's staff-mention field."""
    return _unique(normalize_staff_name(t) for t in tokenize(value, STAFF_DELIMITERS))
