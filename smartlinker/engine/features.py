"""Business-rule relevance signals between a source and a catalog entry.

Each factor returns independently bounded points. The point budgets come
from the ``scoring`` section of the engine configuration.
"""

from __future__ import annotations

from typing import Dict, Sequence

from .config import EngineConfig
from .text import contains_phrase
from .types import CatalogEntry, SourceProfile

FUNNEL_STAGES = ("awareness", "consideration", "decision")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")
GENERAL_PERSONA = "general"
DATED_LIFESPANS = {"dated", "time-sensitive", "timely"}


def compute_features(
    source: SourceProfile,
    target: CatalogEntry,
    source_text: str,
    config: EngineConfig,
) -> Dict[str, float]:
    """Return the point breakdown for one (source, target) pair."""

    return {
        "cluster": cluster_points(source, target, config),
        "topics": _overlap_points(target.main_topics, source_text, config.points("topics")),
        "keywords": _overlap_points(target.semantic_keywords, source_text, config.points("keywords")),
        "funnel": funnel_points(source.funnel_stage, target.funnel_stage, config),
        "difficulty": difficulty_points(source.difficulty_level, target.difficulty_level, config),
        "persona": persona_points(source.target_persona, target.target_persona, config),
        "lifespan": lifespan_points(source.content_lifespan, target.content_lifespan, config),
        "authority": authority_points(target, config),
        "linkGap": link_gap_points(target, config),
        "freshness": _bounded(target.freshness_score / float(config.points("freshness").get("divisor", 10)),
                              config.points("freshness").get("cap", 10)),
        "monetization": _bounded(target.monetization_value, config.points("monetization").get("cap", 10)),
        "conversion": conversion_points(target, config),
    }


def cluster_points(source: SourceProfile, target: CatalogEntry, config: EngineConfig) -> float:
    points = config.points("cluster")
    source_cluster = _norm(source.topic_cluster)
    target_cluster = _norm(target.topic_cluster)
    if not source_cluster or not target_cluster:
        return 0.0
    if source_cluster == target_cluster:
        return float(points.get("exact", 50))

    source_related = {_norm(value) for value in source.related_clusters}
    if target_cluster in source_related:
        return float(points.get("source_related", 40))

    relationships = config.cluster_relationships()
    if target_cluster in {_norm(value) for value in relationships.get(source_cluster, [])}:
        return float(points.get("relationship_map", 35))

    target_related = {_norm(value) for value in target.related_clusters}
    if source_cluster in target_related:
        return float(points.get("reverse_related", 30))

    shared = source_related & target_related
    if shared:
        base = points.get("shared_base", 20) + points.get("shared_step", 3) * len(shared)
        return float(min(base, points.get("shared_cap", 30)))
    return 0.0


def funnel_points(source_stage: str, target_stage: str, config: EngineConfig) -> float:
    points = config.points("funnel")
    source_index = _stage_index(source_stage, FUNNEL_STAGES)
    target_index = _stage_index(target_stage, FUNNEL_STAGES)
    if source_index is None or target_index is None:
        return float(points.get("missing", 10))
    step = target_index - source_index
    if step == 1:
        return float(points.get("forward", 25))
    if step == 0:
        return float(points.get("same", 15))
    if step == -1:
        return float(points.get("back", 10))
    if step == 2:
        return float(points.get("skip", 5))
    return float(points.get("regress", 0))


def difficulty_points(source_level: str, target_level: str, config: EngineConfig) -> float:
    points = config.points("difficulty")
    source_index = _stage_index(source_level, DIFFICULTY_LEVELS)
    target_index = _stage_index(target_level, DIFFICULTY_LEVELS)
    if source_index is None or target_index is None:
        return float(points.get("other", 5))
    step = target_index - source_index
    if step == 0:
        return float(points.get("same", 10))
    if step == 1:
        return float(points.get("up", 15))
    if step < 0:
        return float(points.get("down", 5))
    return float(points.get("other", 5))


def persona_points(source_persona: str, target_persona: str, config: EngineConfig) -> float:
    points = config.points("persona")
    source_value = _norm(source_persona) or GENERAL_PERSONA
    target_value = _norm(target_persona) or GENERAL_PERSONA
    if GENERAL_PERSONA in (source_value, target_value):
        return float(points.get("general", 10))
    if source_value == target_value:
        return float(points.get("match", 30))
    return 0.0


def lifespan_points(source_lifespan: str, target_lifespan: str, config: EngineConfig) -> float:
    points = config.points("lifespan")
    target_value = _norm(target_lifespan)
    if target_value == "evergreen":
        return float(points.get("evergreen_target", 10))
    if _norm(source_lifespan) == "evergreen" and target_value in DATED_LIFESPANS:
        return float(points.get("dated_penalty", -10))
    return 0.0


def authority_points(target: CatalogEntry, config: EngineConfig) -> float:
    points = config.points("authority")
    value = target.quality_score / float(points.get("quality_divisor", 10))
    if target.is_pillar:
        value += points.get("pillar", 20)
    return _bounded(value, points.get("cap", 30))


def link_gap_points(target: CatalogEntry, config: EngineConfig) -> float:
    points = config.points("link_gap")
    value = target.link_gap_priority / 100.0 * points.get("priority_points", 15)
    for threshold, bonus in points.get("deep_page", []):
        if target.inbound_link_count <= threshold:
            value += bonus
            break
    return _bounded(value, points.get("cap", 25))


def conversion_points(target: CatalogEntry, config: EngineConfig) -> float:
    points = config.points("conversion")
    count = sum(1 for flag in (target.has_cta, target.has_calculator, target.has_lead_form) if flag)
    return _bounded(count * points.get("per_affordance", 5), points.get("cap", 15))


def _overlap_points(terms: Sequence[str], source_text: str, points: Dict[str, float]) -> float:
    matches = sum(1 for term in terms if contains_phrase(source_text, term))
    return _bounded(matches * points.get("per_match", 5), points.get("cap", 25))


def _bounded(value: float, cap: float) -> float:
    return float(max(0.0, min(float(value), float(cap))))


def _stage_index(value: str, stages: Sequence[str]) -> int | None:
    lowered = _norm(value)
    if lowered in stages:
        return stages.index(lowered)
    return None


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()
