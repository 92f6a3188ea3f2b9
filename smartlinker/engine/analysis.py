"""Best-effort enrichment of the source document's business tags."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from .clients import AnalysisService, call_with_timeout
from .errors import UpstreamUnavailable
from .types import LinkRequest, SourceProfile, normalise_content_type

logger = logging.getLogger(__name__)

DEFAULT_TAGS: Dict[str, Any] = {
    "topicCluster": "general",
    "relatedClusters": [],
    "funnelStage": "awareness",
    "targetPersona": "general",
    "difficultyLevel": "intermediate",
    "contentLifespan": "evergreen",
}

_REQUEST_FIELDS = {
    "topicCluster": "topic_cluster",
    "funnelStage": "funnel_stage",
    "targetPersona": "target_persona",
    "difficultyLevel": "difficulty_level",
    "contentLifespan": "content_lifespan",
}


def _needs_analysis(request: LinkRequest) -> bool:
    return any(not getattr(request, field) for field in _REQUEST_FIELDS.values())


async def enrich_source(
    request: LinkRequest,
    service: Optional[AnalysisService],
    timeout: float = 20.0,
    plain_text: str = "",
) -> Tuple[SourceProfile, Optional[str]]:
    """Return the source profile and a note when defaults had to be used.

    Values supplied on the request always win over analysed ones.
    """

    analysed: Dict[str, Any] = {}
    note: Optional[str] = None
    if _needs_analysis(request):
        if service is None:
            note = "source analysis not configured; default tags used"
        else:
            try:
                analysed = await call_with_timeout(
                    "analysis service",
                    service.analyze(request.title, plain_text or request.content),
                    timeout,
                )
            except (UpstreamUnavailable, httpx.HTTPError) as exc:
                logger.warning("Source analysis unavailable for %s: %s", request.source_id, exc)
                note = "source analysis unavailable; default tags used"
            else:
                if not isinstance(analysed, dict):
                    logger.warning("Source analysis for %s returned %s", request.source_id, type(analysed).__name__)
                    analysed = {}
                    note = "source analysis unavailable; default tags used"

    def pick(key: str) -> Any:
        value = getattr(request, _REQUEST_FIELDS[key])
        if value:
            return value
        return analysed.get(key) or DEFAULT_TAGS[key]

    related = request.related_clusters or tuple(analysed.get("relatedClusters") or ())
    profile = SourceProfile(
        source_id=request.source_id,
        title=request.title,
        content_type=normalise_content_type(request.content_type),
        topic_cluster=str(pick("topicCluster")),
        related_clusters=tuple(str(value) for value in related),
        funnel_stage=str(pick("funnelStage")),
        target_persona=str(pick("targetPersona")),
        difficulty_level=str(pick("difficultyLevel")),
        content_lifespan=str(pick("contentLifespan")),
    )
    return profile, note
