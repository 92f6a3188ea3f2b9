"""Coordinator for the smart-link pipeline."""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
from typing import Any, Dict, List, Optional

import httpx

from . import anchors as anchors_module
from . import candidates as candidates_module
from . import filters as filters_module
from . import rank as rank_module
from . import seo as seo_module
from .analysis import enrich_source
from .cache import CachePolicy, PolicyCache, RequestCoalescer, response_cache_key
from .clients import AnalysisService, EmbeddingService, VectorIndex, call_with_timeout
from .config import EngineConfig, load_config
from .document import TextDocument
from .embeddings import CachedEmbedder
from .errors import UpstreamUnavailable
from .placement import LinkPlan, insert_links
from .tracking import AnchorUsageTracker, BackgroundTasks, increment_inbound_links
from .types import Candidate, LinkRequest, LinkSuggestion, SourceProfile, ids_key

logger = logging.getLogger(__name__)


class LinkEngine:
    """Ranks link targets for a document and places anchors for them.

    The engine owns the process-wide shared state (response cache,
    embedding cache, in-flight request map, anchor usage) and is meant to
    be constructed once and reused for every request.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: EmbeddingService,
        analysis: Optional[AnalysisService] = None,
        config: EngineConfig | None = None,
        *,
        clock=None,
    ) -> None:
        self.config = config or load_config(None)
        cache_config = self.config.section("cache")
        clock_kwargs = {"clock": clock} if clock is not None else {}
        self.index = index
        self.analysis = analysis
        self.embedder = CachedEmbedder(
            embedder,
            PolicyCache(CachePolicy.from_dict(cache_config.get("embedding", {})), **clock_kwargs),
        )
        self.responses = PolicyCache(
            CachePolicy.from_dict(cache_config.get("response", {})), **clock_kwargs
        )
        self.coalescer = RequestCoalescer()
        usage = cache_config.get("anchor_usage", {})
        self.anchor_usage = AnchorUsageTracker(
            max_entries=int(usage.get("max_entries", 5000)),
            evict_batch=int(usage.get("evict_batch", 500)),
        )
        self.background = BackgroundTasks()

    def stats(self) -> Dict[str, int]:
        return {
            "responses": len(self.responses),
            "embeddings": len(self.embedder.cache),
            "inFlight": self.coalescer.in_flight,
            "anchorsTracked": len(self.anchor_usage),
            "backgroundTasks": len(self.background),
        }

    async def suggest(self, request: LinkRequest) -> Dict[str, Any]:
        """Return the smart-link response for ``request``.

        Identical requests within the cache TTL get the stored response
        back marked ``cached``; identical concurrent requests share one
        computation.
        """

        key = response_cache_key(
            request.source_id,
            request.content,
            request.max_links,
            int(self.config.get("content_fingerprint_chars", 1000)),
        )
        if request.strict_silo:
            key = f"{key}:silo"
        if not request.skip_cache:
            cached = self.responses.get(key)
            if cached is not None:
                logger.debug("Response cache hit %s", key)
                response = copy.deepcopy(cached)
                response["cached"] = True
                return response

        response = await self.coalescer.run(key, lambda: self._compute_and_store(key, request))
        return copy.deepcopy(response)

    async def _compute_and_store(self, key: str, request: LinkRequest) -> Dict[str, Any]:
        response = await self._compute(request)
        if response.get("success") and not response.get("degraded"):
            self.responses[key] = copy.deepcopy(response)
        return response

    async def _compute(self, request: LinkRequest) -> Dict[str, Any]:
        config = self.config
        timeouts = config.section("timeouts")
        document = TextDocument.from_html(request.content)

        if document.engine_link_count >= request.max_links:
            logger.info(
                "Skipping %s: already holds %d smart links (max %d)",
                request.source_id,
                document.engine_link_count,
                request.max_links,
            )
            response = _response([], None, message=(
                f"Content already has {document.engine_link_count} smart links (max: {request.max_links})"
            ))
            response["skipped"] = True
            return response

        source, note = await enrich_source(
            request, self.analysis, float(timeouts.get("analysis", 20.0)), document.text
        )
        notes = [note] if note else []

        try:
            vector = await call_with_timeout(
                "embedding service",
                self.embedder.embed(f"{request.title} {document.text}"),
                float(timeouts.get("embedding", 15.0)),
            )
            retrieved = await candidates_module.retrieve_candidates(
                self.index,
                vector,
                exclude_ids=[*request.exclude_ids, request.source_id],
                top_k=int(config.get("retrieval_top_k", 50)),
                timeout=float(timeouts.get("vector_index", 10.0)),
            )
        except (UpstreamUnavailable, httpx.HTTPError) as exc:
            logger.warning("Retrieval failed for %s: %s", request.source_id, exc)
            response = _response([], None, message=f"Candidate retrieval unavailable: {exc}")
            response["degraded"] = True
            return response

        if not retrieved:
            return _response([], None, message="No candidate articles found")

        filtered = filters_module.filter_candidates(
            source.source_id,
            source.content_type,
            retrieved,
            document.linked_urls,
            request.exclude_ids,
            float(config.get("min_vector_score", 0.0)),
            silo_cluster=source.topic_cluster if request.strict_silo else None,
        )
        ranked = rank_module.rank_candidates(source, filtered, document.text, config)
        min_score = request.min_score if request.min_score is not None else float(config.get("min_score", 40))
        passed = [candidate for candidate in ranked if candidate.relevance_score >= min_score]
        stats = {
            "candidatesFound": len(retrieved),
            "passedFilter": len(filtered),
            "passedScoring": len(passed),
            "averageScore": _average(candidate.relevance_score for candidate in passed),
        }
        if not passed:
            return _response([], None, stats=stats, message="No articles passed scoring threshold")

        insertion = config.section("insertion")
        budget = min(
            request.max_links - document.engine_link_count,
            int(insertion.get("max_links", 8)) - document.engine_link_count,
        )
        suggestions = self._place_anchors(document, source, passed, budget, notes)
        suggestions = await self._apply_seo(document, suggestions)

        linked_content = None
        if request.auto_insert and suggestions:
            result = insert_links(
                request.content,
                [
                    LinkPlan(s.target_id, s.url, s.anchor_text, s.content_type)
                    for s in suggestions
                ],
                max_links=int(insertion.get("max_links", 8)),
                max_summary_links=int(insertion.get("max_summary_links", 3)),
            )
            linked_content = result.html
            stats["linksInserted"] = len(result.inserted)
            self._track(source, result.inserted)
            placed = {link.target_id: link.link_id for link in result.inserted}
            suggestions = [
                dataclasses.replace(s, inserted=True, link_id=placed[s.target_id])
                if s.target_id in placed
                else s
                for s in suggestions
            ]

        stats["linksGenerated"] = len(suggestions)
        message = None if suggestions else "No anchor text found for scored candidates"
        return _response(suggestions, linked_content, stats=stats, message=message)

    def _place_anchors(
        self,
        document: TextDocument,
        source: SourceProfile,
        passed: List[Candidate],
        budget: int,
        notes: List[str],
    ) -> List[LinkSuggestion]:
        used_texts: set[str] = set()
        used_blocks: set[int] = set()
        session_used = self.anchor_usage.used()
        suggestions: List[LinkSuggestion] = []

        for candidate in passed:
            if len(suggestions) >= budget:
                break
            entry = candidate.entry
            try:
                anchor = anchors_module.find_anchor(
                    document, entry, self.config, used_texts, used_blocks, session_used
                )
            except (ArithmeticError, IndexError, KeyError, TypeError, ValueError):
                logger.warning("Anchor discovery failed for target %s", entry.id, exc_info=True)
                continue
            if anchor is None:
                logger.debug("No anchor for target %s", entry.id)
                continue

            used_texts.add(anchor.text.strip().lower())
            used_blocks.add(anchor.block)
            reason = rank_module.score_reason(candidate.score_breakdown, self.config)
            fragments = [reason, f"anchor via {anchor.strategy} match in {anchor.position}", *notes]
            suggestions.append(
                LinkSuggestion(
                    target_id=entry.id,
                    title=entry.title,
                    url=entry.url,
                    content_type=entry.content_type,
                    topic_cluster=entry.topic_cluster,
                    anchor=anchor,
                    score=candidate.relevance_score,
                    score_breakdown=candidate.score_breakdown,
                    reasoning="; ".join(fragment for fragment in fragments if fragment),
                )
            )
        return suggestions

    async def _apply_seo(self, document: TextDocument, suggestions: List[LinkSuggestion]) -> List[LinkSuggestion]:
        """Score every suggestion in parallel, then order by combined score."""

        if not suggestions:
            return []
        seo_results = await asyncio.gather(
            *(
                seo_module.seo_score(
                    suggestion.anchor,
                    suggestion.url,
                    document,
                    anchors_module.distinctive_words(suggestion.title, self.config),
                    self.anchor_usage.count(suggestion.anchor_text),
                    document.linked_urls,
                )
                for suggestion in suggestions
            )
        )
        weight = float(self.config.get("seo_weight", 0.2))
        combined = []
        for suggestion, seo in zip(suggestions, seo_results):
            total = round(suggestion.score + weight * seo["score"], 2)
            combined.append(dataclasses.replace(suggestion, seo=seo, combined_score=total))
        combined.sort(key=lambda item: (-item.combined_score, item.anchor.start, ids_key(item.target_id)))
        return combined

    def _track(self, source: SourceProfile, inserted) -> None:
        for link in inserted:
            self.anchor_usage.record(link.anchor_text)
            self.background.spawn(
                increment_inbound_links(self.index, link.target_id),
                name=f"inbound:{source.source_id}->{link.target_id}",
            )


def _average(values) -> float:
    values = list(values)
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)


def _response(
    suggestions: List[LinkSuggestion],
    linked_content: Optional[str],
    *,
    stats: Optional[Dict[str, Any]] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "success": True,
        "links": [suggestion.to_dict() for suggestion in suggestions],
        "linkedContent": linked_content,
        "stats": stats or {"candidatesFound": 0, "passedScoring": 0, "averageScore": 0.0},
        "cached": False,
    }
    if message:
        response["message"] = message
    return response
