"""SEO quality score for a proposed (anchor, target) link."""

from __future__ import annotations

from typing import Any, Collection, Dict, Sequence

from .document import TextDocument, normalise_url
from .text import tokenize
from .types import AnchorCandidate

BOILERPLATE_WORDS = {"copyright", "disclaimer", "subscribe", "newsletter", "cookie", "cookies", "privacy"}
ACTION_WORDS = {"learn", "discover", "explore", "read", "compare", "calculate", "understand", "find"}


def anchor_diversity_points(usage_count: int) -> float:
    if usage_count <= 0:
        return 30.0
    if usage_count == 1:
        return 28.0
    if usage_count == 2:
        return 25.0
    if usage_count <= 5:
        return 20.0
    if usage_count <= 10:
        return 10.0
    return 0.0


def position_points(percentile: float) -> float:
    for limit, points in ((5, 20.0), (10, 19.0), (20, 17.0), (30, 15.0), (50, 13.0), (70, 11.0), (85, 9.0)):
        if percentile <= limit:
            return points
    return 7.0


def context_quality_points(context: str, topic_words: Sequence[str]) -> float:
    tokens = set(tokenize(context))
    score = 15.0
    matches = sum(1 for word in topic_words if word in tokens)
    if matches >= 2:
        score += 5
    elif matches == 1:
        score += 2
    if tokens & BOILERPLATE_WORDS:
        score -= 10
    if tokens & ACTION_WORDS:
        score += 3
    return max(0.0, min(score, 25.0))


async def seo_score(
    anchor: AnchorCandidate,
    target_url: str,
    document: TextDocument,
    topic_words: Sequence[str],
    usage_count: int = 0,
    linked_urls: Collection[str] = (),
) -> Dict[str, Any]:
    """Return ``{"score", "breakdown", "allowed"}`` for one link."""

    percentile = anchor.start / max(len(document), 1) * 100.0
    already_linked = normalise_url(target_url) in linked_urls
    breakdown = {
        "anchorDiversity": anchor_diversity_points(usage_count),
        "position": position_points(percentile),
        "contextQuality": context_quality_points(anchor.context, topic_words),
        "firstLink": 0.0 if already_linked else 15.0,
    }
    return {
        "score": round(sum(breakdown.values()), 2),
        "breakdown": breakdown,
        "allowed": not already_linked,
    }
