"""Hybrid scoring and ranking logic."""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Sequence

from .config import EngineConfig
from .features import compute_features
from .types import Candidate, SourceProfile, ids_key

logger = logging.getLogger(__name__)


def hybrid_score(vector_score: float, business_points: float, config: EngineConfig) -> float:
    """Blend vector similarity (0-1) with business points into a score >= 0."""

    hybrid = config.section("hybrid")
    normaliser = float(hybrid.get("business_normaliser", 200.0)) or 1.0
    business = min(max(business_points, 0.0) / normaliser * 100.0, 100.0)
    vector = max(0.0, min(vector_score, 1.0)) * 100.0
    score = hybrid.get("vector_weight", 0.4) * vector + hybrid.get("business_weight", 0.6) * business
    return round(max(score, 0.0), 2)


def score_candidate(
    source: SourceProfile,
    candidate: Candidate,
    source_text: str,
    config: EngineConfig,
) -> Candidate:
    features = compute_features(source, candidate.entry, source_text, config)
    business = sum(features.values())
    breakdown = dict(features)
    breakdown["vector"] = round(candidate.vector_score * 100.0, 2)
    breakdown["business"] = round(business, 2)
    return dataclasses.replace(
        candidate,
        relevance_score=hybrid_score(candidate.vector_score, business, config),
        score_breakdown=breakdown,
    )


def rank_candidates(
    source: SourceProfile,
    candidates: Sequence[Candidate],
    source_text: str,
    config: EngineConfig,
) -> List[Candidate]:
    """Score every candidate and return them best first.

    A candidate whose scoring raises is logged and left out; the rest of
    the batch is unaffected. Equal scores are ordered by id ascending.
    """

    scored: List[Candidate] = []
    for candidate in candidates:
        try:
            scored.append(score_candidate(source, candidate, source_text, config))
        except (ArithmeticError, KeyError, TypeError, ValueError):
            logger.warning("Scoring failed for candidate %s", candidate.entry.id, exc_info=True)
    scored.sort(key=ranking_key)
    return scored


def ranking_key(candidate: Candidate):
    return (-candidate.relevance_score, ids_key(candidate.entry.id))


def score_reason(breakdown: Dict[str, float], config: EngineConfig, top_k: int = 2) -> str:
    """Return a human-friendly reason summary based on the strongest factors."""

    weighted = []
    for name, value in breakdown.items():
        cap = _factor_cap(name, config)
        if cap > 0 and value > 0:
            weighted.append((value / cap, name))
    weighted.sort(key=lambda item: (-item[0], item[1]))

    fragments = [_reason_fragment(name, ratio) for ratio, name in weighted[:top_k]]
    return "; ".join(fragment for fragment in fragments if fragment)


def _factor_cap(name: str, config: EngineConfig) -> float:
    if name == "vector":
        return 100.0
    points = config.points({"linkGap": "link_gap"}.get(name, name))
    if "cap" in points:
        return float(points["cap"])
    numeric = [value for value in points.values() if isinstance(value, (int, float))]
    return float(max(numeric)) if numeric else 0.0


def _reason_fragment(name: str, ratio: float) -> str:
    mapping = {
        "vector": "semantic similarity",
        "cluster": "topic cluster match",
        "topics": "topic overlap",
        "keywords": "keyword overlap",
        "funnel": "funnel progression",
        "difficulty": "difficulty progression",
        "persona": "audience match",
        "lifespan": "evergreen target",
        "authority": "authoritative target",
        "linkGap": "under-linked target",
        "freshness": "recent update",
        "monetization": "monetization value",
        "conversion": "conversion affordances",
    }
    descriptor = mapping.get(name)
    if not descriptor:
        return ""
    if ratio >= 0.85:
        qualifier = "excellent"
    elif ratio >= 0.6:
        qualifier = "strong"
    else:
        qualifier = "good"
    return f"{qualifier} {descriptor}"
