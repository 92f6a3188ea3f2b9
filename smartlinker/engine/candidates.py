"""Candidate retrieval from the vector index."""

from __future__ import annotations

import logging
from typing import List, Sequence

from .clients import VectorIndex, call_with_timeout
from .types import Candidate, CatalogEntry

logger = logging.getLogger(__name__)


async def retrieve_candidates(
    index: VectorIndex,
    vector: Sequence[float],
    exclude_ids: Sequence[str],
    top_k: int = 50,
    timeout: float = 10.0,
) -> List[Candidate]:
    """Return candidates for the source embedding, most similar first.

    A generous ``top_k`` leaves room for the filters that follow. Errors
    from the index propagate as :class:`UpstreamUnavailable`.
    """

    matches = await call_with_timeout(
        "vector index",
        index.query(vector, top_k=top_k, exclude_ids=list(exclude_ids)),
        timeout,
    )
    candidates = [
        Candidate(entry=CatalogEntry.from_metadata(match.id, match.metadata), vector_score=float(match.score))
        for match in matches
    ]
    logger.debug("Retrieved %d candidates (top_k=%d)", len(candidates), top_k)
    return candidates
