"""
Trigram similarity for fuzzy catalog and job matching.

Scores follow PostgreSQL's pg_trgm: each lower-cased word is padded with two
leading spaces and one trailing space, cut into 3-character grams, and two
strings are compared by the Jaccard overlap of their gram sets.
"""

import re

DEFAULT_THRESHOLD = 0.3

_WORD = re.compile(r"[^\W_]+", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def normalize_query(text: str | None) -> str:
    """Trim and collapse internal whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def trigrams(text: str | None) -> set[str]:
    """Return the pg_trgm-style trigram set for text."""
    if not text:
        return set()
    grams: set[str] = set()
    for word in _WORD.findall(text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i : i + 3])
    return grams


def similarity(left: str | None, right: str | None) -> float:
    """
    Trigram similarity between two strings, in [0.0, 1.0].

    Registered on SQLite connections as similarity(a, b), so it must
    accept NULLs.
    """
    a = trigrams(left)
    b = trigrams(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)

