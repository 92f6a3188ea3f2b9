"""Typed data structures used by the link engine pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

PAGE_TYPES = {"page", "landing", "summary"}


def normalise_content_type(value: Optional[str]) -> str:
    """Collapse content type aliases to ``page`` or ``post``."""

    lowered = (value or "").strip().lower()
    if lowered in PAGE_TYPES:
        return "page"
    return "post"


def _str_list(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    return tuple(str(item).strip() for item in value if str(item).strip())


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _flag(value: Any) -> bool:
    # Metadata stores often hand booleans back as strings.
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class CatalogEntry:
    """Stored metadata for one linkable content item."""

    id: str
    title: str
    url: str
    content_type: str = "post"
    topic_cluster: str = ""
    related_clusters: Tuple[str, ...] = ()
    funnel_stage: str = ""
    target_persona: str = "general"
    difficulty_level: str = "intermediate"
    quality_score: float = 50.0
    content_lifespan: str = "evergreen"
    freshness_score: float = 50.0
    monetization_value: float = 0.0
    has_cta: bool = False
    has_calculator: bool = False
    has_lead_form: bool = False
    link_gap_priority: float = 0.0
    inbound_link_count: int = 0
    is_pillar: bool = False
    main_topics: Tuple[str, ...] = ()
    semantic_keywords: Tuple[str, ...] = ()
    embedding: Tuple[float, ...] = ()

    @classmethod
    def from_metadata(cls, entry_id: Any, metadata: Mapping[str, Any]) -> "CatalogEntry":
        """Build an entry from vector index metadata (camelCase keys)."""

        return cls(
            id=str(metadata.get("postId", entry_id)),
            title=str(metadata.get("title", "")),
            url=str(metadata.get("url", "")),
            content_type=normalise_content_type(metadata.get("contentType")),
            topic_cluster=str(metadata.get("topicCluster") or ""),
            related_clusters=_str_list(metadata.get("relatedClusters")),
            funnel_stage=str(metadata.get("funnelStage") or ""),
            target_persona=str(metadata.get("targetPersona") or "general"),
            difficulty_level=str(metadata.get("difficultyLevel") or "intermediate"),
            quality_score=_number(metadata.get("qualityScore"), 50.0),
            content_lifespan=str(metadata.get("contentLifespan") or "evergreen"),
            freshness_score=_number(metadata.get("freshnessScore"), 50.0),
            monetization_value=_number(metadata.get("monetizationValue")),
            has_cta=_flag(metadata.get("hasCTA")),
            has_calculator=_flag(metadata.get("hasCalculator")),
            has_lead_form=_flag(metadata.get("hasLeadForm")),
            link_gap_priority=_number(metadata.get("linkGapPriority")),
            inbound_link_count=int(_number(metadata.get("inboundLinkCount"))),
            is_pillar=_flag(metadata.get("isPillar")),
            main_topics=_str_list(metadata.get("mainTopics")),
            semantic_keywords=_str_list(metadata.get("semanticKeywords")),
        )


@dataclass(frozen=True)
class Candidate:
    """Catalog entry under consideration for one ranking pass."""

    entry: CatalogEntry
    vector_score: float
    relevance_score: float = 0.0
    score_breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AnchorCandidate:
    """A span of the source text usable as anchor text."""

    text: str
    start: int
    end: int
    block: int
    strategy: str
    position: str
    raw_score: float
    is_exact_title_match: bool = False
    is_natural_language: bool = False
    context: str = ""


@dataclass(frozen=True)
class SourceProfile:
    """The source document's business tags after enrichment."""

    source_id: str
    title: str
    content_type: str = "post"
    topic_cluster: str = "general"
    related_clusters: Tuple[str, ...] = ()
    funnel_stage: str = "awareness"
    target_persona: str = "general"
    difficulty_level: str = "intermediate"
    content_lifespan: str = "evergreen"


@dataclass(frozen=True)
class LinkRequest:
    """A smart-link request from the content management client."""

    source_id: str
    content: str
    title: str
    topic_cluster: Optional[str] = None
    related_clusters: Tuple[str, ...] = ()
    funnel_stage: Optional[str] = None
    target_persona: Optional[str] = None
    difficulty_level: Optional[str] = None
    content_lifespan: Optional[str] = None
    content_type: str = "post"
    max_links: int = 5
    min_score: Optional[float] = None
    exclude_ids: Tuple[str, ...] = ()
    auto_insert: bool = False
    skip_cache: bool = False
    strict_silo: bool = False


@dataclass(frozen=True)
class LinkSuggestion:
    """Suggested internal link for a source document."""

    target_id: str
    title: str
    url: str
    content_type: str
    topic_cluster: str
    anchor: AnchorCandidate
    score: float
    score_breakdown: Dict[str, float]
    reasoning: str
    seo: Optional[Dict[str, Any]] = None
    combined_score: float = 0.0
    inserted: bool = False
    link_id: Optional[str] = None

    @property
    def anchor_text(self) -> str:
        return self.anchor.text

    @property
    def placement(self) -> str:
        return self.anchor.position

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetId": self.target_id,
            "title": self.title,
            "url": self.url,
            "contentType": self.content_type,
            "topicCluster": self.topic_cluster,
            "anchorText": self.anchor.text,
            "placement": self.anchor.position,
            "strategy": self.anchor.strategy,
            "context": self.anchor.context,
            "score": self.score,
            "combinedScore": self.combined_score,
            "scoreBreakdown": dict(self.score_breakdown),
            "reasoning": self.reasoning,
            "seo": dict(self.seo) if self.seo is not None else None,
            "inserted": self.inserted,
            "linkId": self.link_id,
        }


@dataclass(frozen=True)
class InsertedLink:
    """A hyperlink written into the document by the mutator."""

    link_id: str
    target_id: str
    url: str
    anchor_text: str
    context: str | None = None


@dataclass(frozen=True)
class InsertionResult:
    """Outcome of one insertion pass."""

    html: str
    inserted: List[InsertedLink]
    skipped: List[Tuple[str, str]]


def ids_key(value: str) -> Tuple[int, float, str]:
    """Sort key that orders numeric ids numerically before other ids."""

    try:
        return (0, float(value), "")
    except (TypeError, ValueError):
        return (1, 0.0, str(value))


def as_id_tuple(values: Sequence[Any] | None) -> Tuple[str, ...]:
    return tuple(str(value) for value in values or ())
