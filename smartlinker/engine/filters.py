"""Structural and business-rule filters for candidates."""

from __future__ import annotations

from typing import Collection, Dict, List, Sequence

from .document import normalise_url
from .types import Candidate, normalise_content_type

# source type -> target types it may link to
LINK_POLICY: Dict[str, set[str]] = {
    "page": {"page"},
    "post": {"post", "page"},
}


def allowed_by_policy(source_type: str, target_type: str) -> bool:
    allowed = LINK_POLICY.get(normalise_content_type(source_type), LINK_POLICY["post"])
    return normalise_content_type(target_type) in allowed


def same_silo(source_cluster: str | None, target_cluster: str | None) -> bool:
    """Return True when both clusters match or either side is untagged."""

    source_value = (source_cluster or "").strip().lower()
    target_value = (target_cluster or "").strip().lower()
    if not source_value or not target_value:
        return True
    return source_value == target_value


def allow_candidate(
    source_id: str,
    source_type: str,
    candidate: Candidate,
    linked_urls: Collection[str],
    excluded_ids: Collection[str],
    min_vector_score: float = 0.0,
    silo_cluster: str | None = None,
) -> bool:
    """Return True when the candidate may be scored.

    ``silo_cluster`` restricts targets to that topic cluster (strict silo mode).
    """

    entry = candidate.entry
    if entry.id == str(source_id) or entry.id in excluded_ids:
        return False
    if not entry.url or normalise_url(entry.url) in linked_urls:
        return False
    if candidate.vector_score < min_vector_score:
        return False
    if silo_cluster is not None and not same_silo(silo_cluster, entry.topic_cluster):
        return False
    return allowed_by_policy(source_type, entry.content_type)


def filter_candidates(
    source_id: str,
    source_type: str,
    candidates: Sequence[Candidate],
    linked_urls: Collection[str],
    exclude_ids: Sequence[str] = (),
    min_vector_score: float = 0.0,
    silo_cluster: str | None = None,
) -> List[Candidate]:
    excluded = {str(value) for value in exclude_ids}
    linked = {normalise_url(url) for url in linked_urls}
    return [
        candidate
        for candidate in candidates
        if allow_candidate(source_id, source_type, candidate, linked, excluded, min_vector_score, silo_cluster)
    ]
