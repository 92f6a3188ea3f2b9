"""Anchor text discovery, scoring and selection.

Three generators propose spans of the source text for a target:

* ``sentence``: whole sentences mentioning several distinctive title words,
* ``phrase``: n-grams of the target title that occur verbatim in the source,
* ``contextual``: a short window of words around one distinctive word.

Every proposal is a typed span inside a single linkable text node, so the
insertion step can always find it again. Scoring multiplies a strategy
weight by position, distinctiveness and length factors and then applies
the title-match, connector and brand adjustments.
"""

from __future__ import annotations

import logging
import re
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import EngineConfig
from .document import Span, TextDocument
from .text import collapse_whitespace, phrase_pattern, tokenize
from .types import AnchorCandidate, CatalogEntry

logger = logging.getLogger(__name__)

_SENTENCE_END_RE = re.compile(r"[.!?]")


def distinctive_words(title: str, config: EngineConfig) -> List[str]:
    """Return the title words long and specific enough to identify a target."""

    anchors = config.section("anchors")
    min_length = int(anchors.get("min_word_length", 4))
    stopwords = config.word_list("stopwords")
    generic = config.word_list("generic_terms")
    words: List[str] = []
    for token in tokenize(title):
        if len(token) < min_length or token in stopwords or token in generic:
            continue
        if token not in words:
            words.append(token)
    return words


def extract_candidate_anchors(
    document: TextDocument,
    target: CatalogEntry,
    config: EngineConfig,
) -> List[AnchorCandidate]:
    """Return scored anchor proposals for ``target`` within the document."""

    distinctive = distinctive_words(target.title, config)
    if not distinctive:
        logger.debug("Target %s has no distinctive title words", target.id)
        return []

    spans: List[Tuple[Span, str]] = []
    spans.extend((span, "sentence") for span in _sentence_spans(document, distinctive, config))
    spans.extend((span, "phrase") for span in _phrase_spans(document, target.title, distinctive, config))
    spans.extend((span, "contextual") for span in _contextual_spans(document, distinctive, config))

    scored: Dict[Tuple[int, int], AnchorCandidate] = {}
    for span, strategy in spans:
        segment = document.linkable_segment(span.start, span.end)
        if segment is None:
            continue
        candidate = _score_span(document, span, strategy, segment.block, target.title, distinctive, config)
        key = (span.start, span.end)
        if key not in scored or candidate.raw_score > scored[key].raw_score:
            scored[key] = candidate
    return sorted(scored.values(), key=_selection_key)


def select_anchor(
    document: TextDocument,
    candidates: Sequence[AnchorCandidate],
    used_texts: Collection[str],
    used_blocks: Collection[int],
    session_used: Collection[str] = (),
    window: int = 45,
) -> Optional[AnchorCandidate]:
    """Return the best unused candidate with its surrounding context."""

    for candidate in sorted(candidates, key=_selection_key):
        normalized_text = candidate.text.strip().lower()
        if normalized_text in used_texts or normalized_text in session_used:
            continue
        if normalized_text in document.engine_anchor_texts:
            continue
        if candidate.block in used_blocks:
            continue
        return AnchorCandidate(
            text=candidate.text,
            start=candidate.start,
            end=candidate.end,
            block=candidate.block,
            strategy=candidate.strategy,
            position=candidate.position,
            raw_score=candidate.raw_score,
            is_exact_title_match=candidate.is_exact_title_match,
            is_natural_language=candidate.is_natural_language,
            context=document.context(candidate.start, candidate.end, window),
        )
    return None


def find_anchor(
    document: TextDocument,
    target: CatalogEntry,
    config: EngineConfig,
    used_texts: Collection[str] = (),
    used_blocks: Collection[int] = (),
    session_used: Collection[str] = (),
) -> Optional[AnchorCandidate]:
    candidates = extract_candidate_anchors(document, target, config)
    window = int(config.section("anchors").get("context_window", 45))
    return select_anchor(document, candidates, used_texts, used_blocks, session_used, window)


def _selection_key(candidate: AnchorCandidate):
    return (-candidate.raw_score, candidate.start, candidate.end)


def _sentence_spans(document: TextDocument, distinctive: Sequence[str], config: EngineConfig) -> Iterable[Span]:
    anchors = config.section("anchors")
    min_chars = int(anchors.get("sentence_min_chars", 20))
    max_chars = int(anchors.get("sentence_max_chars", 150))
    required = int(anchors.get("sentence_min_distinctive", 2))
    for span in document.sentences():
        if not min_chars <= len(span.text) <= max_chars:
            continue
        if len(_present(span.text, distinctive)) >= required:
            yield span


def _phrase_spans(
    document: TextDocument,
    title: str,
    distinctive: Sequence[str],
    config: EngineConfig,
) -> Iterable[Span]:
    anchors = config.section("anchors")
    min_words = int(anchors.get("phrase_min_words", 3))
    max_words = int(anchors.get("phrase_max_words", 6))
    min_chars = int(anchors.get("phrase_min_chars", 12))
    stopwords = config.word_list("stopwords")
    blacklist = config.word_list("generic_phrases")
    title_words = tokenize(title)

    seen: set[str] = set()
    for size in range(min(max_words, len(title_words)), min_words - 1, -1):
        for offset in range(len(title_words) - size + 1):
            gram = title_words[offset:offset + size]
            phrase = " ".join(gram)
            if phrase in seen:
                continue
            seen.add(phrase)
            if len(phrase) < min_chars or phrase in blacklist:
                continue
            if gram[0] in stopwords or gram[-1] in stopwords:
                continue
            if not any(word in distinctive for word in gram):
                continue
            for match in phrase_pattern(phrase).finditer(document.text):
                yield Span(match.start(), match.end(), match.group(0))


def _contextual_spans(document: TextDocument, distinctive: Sequence[str], config: EngineConfig) -> Iterable[Span]:
    anchors = config.section("anchors")
    min_chars = int(anchors.get("context_min_chars", 15))
    max_chars = int(anchors.get("context_max_chars", 80))
    radius = int(anchors.get("context_radius_words", 3))
    stopwords = config.word_list("stopwords")
    blacklist = config.word_list("generic_phrases")
    words = document.words()

    for index, word in enumerate(words):
        if word.text.lower() not in distinctive:
            continue
        segment = document.segment_at(word.start)
        if segment is None:
            continue
        lower = index
        while lower > 0 and index - lower < radius and words[lower - 1].start >= segment.start:
            lower -= 1
        upper = index
        while upper < len(words) - 1 and upper - index < radius and words[upper + 1].end <= segment.end:
            upper += 1
        while lower < index and _SENTENCE_END_RE.search(document.text, words[lower].end, words[index].start):
            lower += 1
        while upper > index and _SENTENCE_END_RE.search(document.text, words[index].end, words[upper].start):
            upper -= 1
        while lower < index and words[lower].text.lower() in stopwords:
            lower += 1
        while upper > index and words[upper].text.lower() in stopwords:
            upper -= 1
        while words[upper].end - words[lower].start > max_chars and (lower < index or upper > index):
            if index - lower >= upper - index:
                lower += 1
            else:
                upper -= 1

        start, end = words[lower].start, words[upper].end
        text = document.text[start:end]
        if not min_chars <= len(text) <= max_chars:
            continue
        lowered = collapse_whitespace(text).lower()
        if any(phrase in lowered for phrase in blacklist if " " in phrase) or lowered in blacklist:
            continue
        yield Span(start, end, text)


def _score_span(
    document: TextDocument,
    span: Span,
    strategy: str,
    block: int,
    title: str,
    distinctive: Sequence[str],
    config: EngineConfig,
) -> AnchorCandidate:
    anchors = config.section("anchors")
    position = document.position_label(
        span.start,
        int(anchors.get("intro_chars", 500)),
        float(anchors.get("intro_ratio", 0.2)),
        float(anchors.get("conclusion_ratio", 0.8)),
    )
    score = float(anchors.get("strategy_weights", {}).get(strategy, 1.0))
    score *= float(anchors.get("position_multipliers", {}).get(position, 1.0))
    score *= 1.0 + len(_present(span.text, distinctive)) / len(distinctive)
    score *= _length_multiplier(span.text, anchors.get("length_multipliers", {}))

    tokens = set(tokenize(span.text))
    exact = collapse_whitespace(span.text).lower() == collapse_whitespace(title).lower()
    if exact:
        score *= float(anchors.get("exact_title_penalty", 0.5))
    has_connector = bool(tokens & config.word_list("connector_words"))
    if has_connector:
        score *= float(anchors.get("connector_bonus", 1.15))
    lowered = span.text.lower()
    if any(term in tokens or (" " in term and term in lowered) for term in config.word_list("brand_terms")):
        score *= float(anchors.get("brand_bonus", 1.1))

    return AnchorCandidate(
        text=span.text,
        start=span.start,
        end=span.end,
        block=block,
        strategy=strategy,
        position=position,
        raw_score=round(score, 4),
        is_exact_title_match=exact,
        is_natural_language=strategy != "phrase" or has_connector,
    )


def _present(text: str, distinctive: Sequence[str]) -> List[str]:
    tokens = set(tokenize(text))
    return [word for word in distinctive if word in tokens]


def _length_multiplier(text: str, multipliers: Dict[str, float]) -> float:
    words = len(text.split())
    if 3 <= words <= 8:
        return float(multipliers.get("ideal", 1.2))
    if words == 2 or 9 <= words <= 15:
        return float(multipliers.get("acceptable", 1.0))
    return float(multipliers.get("poor", 0.85))
