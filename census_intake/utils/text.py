"""Text normalization helpers shared by detection and mapping."""

import re
import unicodedata
from typing import Iterable, List, Set

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def fold(text: str) -> str:
    """Lowercase and strip accents ("Código" -> "codigo")."""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def compact(text: str) -> str:
    """Folded text with everything but letters and digits removed."""
    return _NON_ALNUM.sub("", fold(text))


def words(text: str, min_length: int = 1) -> List[str]:
    """Folded alphanumeric words of a header or synonym."""
    return [w for w in _NON_ALNUM.split(fold(text)) if len(w) >= min_length]


def keyword_in(keyword: str, text: str) -> bool:
    """
    Check whether a keyword occurs in a header.

    Keywords of three characters or fewer must match a whole word so that
    "id" does not match "salida".
    """
    key = fold(keyword)
    folded = fold(text)
    if not key:
        return False
    if len(key) <= 3 and " " not in key:
        return key in words(folded)
    return key in folded


def any_keyword(keywords: Iterable[str], text: str) -> bool:
    return any(keyword_in(k, text) for k in keywords)


def significant_words(text: str) -> Set[str]:
    """Words longer than two characters."""
    return set(words(text, min_length=3))
