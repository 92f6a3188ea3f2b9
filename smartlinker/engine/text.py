"""Shared text utilities for the link engine."""

from __future__ import annotations

import math
import re
from typing import Iterator, List, Sequence

_TOKEN_RE = re.compile(r"[\w']+")
_WHITESPACE_RE = re.compile(r"\s+")

# Word boundary regex template used when compiling anchor matchers
WORD_BOUNDARY = r"(?<![A-Za-z0-9_]){term}(?![A-Za-z0-9_])"


def tokenize(text: str) -> List[str]:
    """Return lower-cased word tokens from the provided text."""

    return [token.lower() for token in _TOKEN_RE.findall(text)]


def iter_words(text: str) -> Iterator[re.Match[str]]:
    return _TOKEN_RE.finditer(text)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Compile a case-insensitive, whitespace-tolerant matcher for ``phrase``."""

    words = [re.escape(word) for word in phrase.split()]
    return re.compile(WORD_BOUNDARY.format(term=r"\s+".join(words)), flags=re.IGNORECASE)


def contains_phrase(text: str, phrase: str) -> bool:
    if not phrase.strip():
        return False
    return phrase_pattern(phrase).search(text) is not None


def vector_cosine(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Cosine similarity between two dense vectors."""

    if not vector_a or not vector_b or len(vector_a) != len(vector_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vector_a, vector_b))
    norm_a = math.sqrt(sum(a * a for a in vector_a))
    norm_b = math.sqrt(sum(b * b for b in vector_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)

