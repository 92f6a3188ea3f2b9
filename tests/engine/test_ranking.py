"""Ranking behaviour tests."""

from __future__ import annotations

import pytest

from smartlinker.engine.features import cluster_points, funnel_points, lifespan_points, persona_points
from smartlinker.engine.rank import hybrid_score, rank_candidates, score_reason
from smartlinker.engine.types import Candidate, SourceProfile

from .conftest import make_entry


def _source(**overrides):
    values = dict(
        source_id="1",
        title="Getting Started With the BRRRR Method",
        topic_cluster="brrrr-strategy",
        funnel_stage="awareness",
    )
    values.update(overrides)
    return SourceProfile(**values)


def test_hybrid_score_blends_vector_and_business(engine_config):
    assert hybrid_score(0.5, 100, engine_config) == pytest.approx(50.0)
    assert hybrid_score(1.0, 400, engine_config) == pytest.approx(100.0)
    assert hybrid_score(0.0, -50, engine_config) == 0.0


@pytest.mark.parametrize(
    "source_stage, target_stage, expected",
    [
        ("awareness", "consideration", 25),
        ("consideration", "consideration", 15),
        ("decision", "consideration", 10),
        ("awareness", "decision", 5),
        ("decision", "awareness", 0),
        ("", "decision", 10),
    ],
)
def test_funnel_progression_points(engine_config, source_stage, target_stage, expected):
    assert funnel_points(source_stage, target_stage, engine_config) == expected


def test_persona_points(engine_config):
    assert persona_points("investor", "investor", engine_config) == 30
    assert persona_points("investor", "general", engine_config) == 10
    assert persona_points("investor", "first-time-buyer", engine_config) == 0


def test_lifespan_penalises_dated_targets_from_evergreen_sources(engine_config):
    assert lifespan_points("evergreen", "evergreen", engine_config) == 10
    assert lifespan_points("evergreen", "time-sensitive", engine_config) == -10
    assert lifespan_points("seasonal", "time-sensitive", engine_config) == 0


def test_cluster_points_follow_relationship_tiers(engine_config):
    source = _source(related_clusters=("tax-strategies",))

    assert cluster_points(source, make_entry("2", "A", topicCluster="brrrr-strategy"), engine_config) == 50
    assert cluster_points(source, make_entry("3", "B", topicCluster="tax-strategies"), engine_config) == 40
    assert cluster_points(source, make_entry("4", "C", topicCluster="renovation"), engine_config) == 35
    reverse = make_entry("5", "D", topicCluster="landlording", relatedClusters=["brrrr-strategy"])
    assert cluster_points(source, reverse, engine_config) == 30
    assert cluster_points(source, make_entry("6", "E", topicCluster="gardening"), engine_config) == 0


def test_same_cluster_target_outranks_more_similar_unrelated_target(engine_config):
    same_cluster = make_entry(
        "101",
        "BRRRR Refinance Timeline Explained",
        topicCluster="brrrr-strategy",
        funnelStage="consideration",
    )
    unrelated = make_entry(
        "102",
        "Tax Filing Deadlines Calendar",
        topicCluster="tax-filing",
        funnelStage="awareness",
    )

    ranked = rank_candidates(
        _source(),
        [Candidate(unrelated, 0.95), Candidate(same_cluster, 0.80)],
        "",
        engine_config,
    )

    assert [candidate.entry.id for candidate in ranked] == ["101", "102"]
    assert ranked[0].relevance_score == pytest.approx(69.5)
    assert ranked[1].relevance_score == pytest.approx(57.5)
    assert ranked[0].score_breakdown["cluster"] == 50
    assert ranked[0].score_breakdown["funnel"] == 25
    assert ranked[0].score_breakdown["vector"] == pytest.approx(80.0)


def test_equal_scores_break_ties_by_id(engine_config):
    entries = [make_entry(entry_id, f"Article {entry_id}") for entry_id in ("30", "4", "12")]

    ranked = rank_candidates(_source(), [Candidate(entry, 0.7) for entry in entries], "", engine_config)

    assert [candidate.entry.id for candidate in ranked] == ["4", "12", "30"]


def test_topic_and_keyword_overlap_uses_source_text(engine_config):
    target = make_entry(
        "7",
        "Appraisal Gaps",
        mainTopics=["appraisal", "refinance"],
        semanticKeywords=["cash-out refinance"],
    )

    ranked = rank_candidates(
        _source(),
        [Candidate(target, 0.5)],
        "Plan the refinance before the appraisal. A cash-out refinance frees equity.",
        engine_config,
    )

    assert ranked[0].score_breakdown["topics"] == 10
    assert ranked[0].score_breakdown["keywords"] == 4


def test_score_reason_names_strongest_factors(engine_config):
    reason = score_reason({"cluster": 50, "funnel": 25, "vector": 30.0, "persona": 0}, engine_config)

    assert reason == "excellent topic cluster match; excellent funnel progression"


@pytest.mark.parametrize(
    "stored, expected",
    [(True, True), ("true", True), ("Yes", True), ("1", True), ("false", False), ("0", False), ("", False), (None, False)],
)
def test_metadata_flags_accept_string_booleans(stored, expected):
    entry = make_entry("5", "Flags", hasCTA=stored, isPillar=stored)

    assert entry.has_cta is expected
    assert entry.is_pillar is expected
