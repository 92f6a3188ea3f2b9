"""Configuration helpers for the link engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name, {})
        return value if isinstance(value, dict) else {}

    def points(self, factor: str) -> Dict[str, Any]:
        """Return the point budget table for one relevance factor."""

        return self.section("scoring").get(factor, {})

    def cluster_relationships(self) -> Dict[str, List[str]]:
        return self.raw.get("cluster_relationships", {})

    def word_list(self, name: str) -> set[str]:
        return {str(word).lower() for word in self.section("anchors").get(name, [])}


DEFAULTS: Dict[str, Any] = {
    "retrieval_top_k": 50,
    "min_score": 40,
    "min_vector_score": 0.0,
    "default_max_links": 5,
    "content_fingerprint_chars": 1000,
    "timeouts": {
        "vector_index": 10.0,
        "embedding": 15.0,
        "analysis": 20.0,
    },
    "hybrid": {
        "vector_weight": 0.4,
        "business_weight": 0.6,
        "business_normaliser": 200.0,
    },
    "seo_weight": 0.2,
    "insertion": {
        "max_links": 8,
        "max_summary_links": 3,
    },
    "cache": {
        "response": {"ttl_seconds": 86400, "max_entries": 1000, "evict_batch": 100},
        "embedding": {"ttl_seconds": 86400, "max_entries": 500, "evict_batch": 50},
        "anchor_usage": {"max_entries": 5000, "evict_batch": 500},
    },
    "scoring": {
        "cluster": {
            "exact": 50,
            "source_related": 40,
            "relationship_map": 35,
            "reverse_related": 30,
            "shared_base": 20,
            "shared_step": 3,
            "shared_cap": 30,
        },
        "topics": {"per_match": 5, "cap": 25},
        "keywords": {"per_match": 4, "cap": 20},
        "funnel": {"forward": 25, "same": 15, "back": 10, "skip": 5, "regress": 0, "missing": 10},
        "difficulty": {"same": 10, "up": 15, "down": 5, "other": 5},
        "persona": {"match": 30, "general": 10},
        "lifespan": {"evergreen_target": 10, "dated_penalty": -10},
        "authority": {"pillar": 20, "quality_divisor": 10, "cap": 30},
        "link_gap": {"priority_points": 15, "cap": 25, "deep_page": [[0, 10], [2, 5], [5, 2]]},
        "freshness": {"divisor": 10, "cap": 10},
        "monetization": {"cap": 10},
        "conversion": {"per_affordance": 5, "cap": 15},
    },
    "cluster_relationships": {
        "brrrr-strategy": ["financing", "rental-properties", "renovation", "refinancing"],
        "financing": ["mortgages", "refinancing", "credit", "brrrr-strategy"],
        "rental-properties": ["property-management", "cash-flow", "brrrr-strategy", "tenant-screening"],
        "first-time-buyer": ["mortgages", "home-buying-process", "financing"],
        "investment-strategy": ["brrrr-strategy", "rental-properties", "market-analysis"],
        "mortgages": ["financing", "refinancing", "first-time-buyer", "rates"],
        "market-analysis": ["investment-strategy", "location", "timing"],
        "property-management": ["rental-properties", "tenant-screening", "maintenance"],
        "tax-strategies": ["incorporation", "deductions", "investment-strategy"],
        "renovation": ["brrrr-strategy", "value-add", "contractors"],
    },
    "anchors": {
        "min_word_length": 4,
        "sentence_min_chars": 20,
        "sentence_max_chars": 150,
        "sentence_min_distinctive": 2,
        "phrase_min_words": 3,
        "phrase_max_words": 6,
        "phrase_min_chars": 12,
        "context_min_chars": 15,
        "context_max_chars": 80,
        "context_radius_words": 3,
        "context_window": 45,
        "intro_chars": 500,
        "intro_ratio": 0.2,
        "conclusion_ratio": 0.8,
        "position_multipliers": {"intro": 1.3, "conclusion": 1.1, "body": 1.0},
        "strategy_weights": {"phrase": 1.5, "sentence": 1.0, "contextual": 0.8},
        "length_multipliers": {"ideal": 1.2, "acceptable": 1.0, "poor": 0.85},
        "exact_title_penalty": 0.5,
        "connector_bonus": 1.15,
        "brand_bonus": 1.1,
        "stopwords": [
            "a", "about", "after", "all", "also", "an", "and", "any", "are", "as", "at", "be",
            "been", "before", "being", "but", "by", "can", "could", "does", "each", "for",
            "from", "have", "how", "if", "in", "into", "is", "it", "its", "just", "more", "most",
            "not", "of", "on", "only", "or", "other", "over", "should", "some", "such", "than",
            "that", "the", "their", "them", "then", "there", "these", "they", "this", "those",
            "to", "very", "was", "were", "what", "when", "where", "which", "while", "who",
            "why", "will", "with", "would", "you", "your",
        ],
        "generic_terms": [
            "best", "complete", "everything", "explained", "finance", "financing", "guide",
            "guides", "ideas", "investing", "investment", "know", "loan", "loans", "money",
            "mortgage", "mortgages", "need", "option", "options", "overview", "properties",
            "property", "real", "estate", "things", "tips", "ultimate", "ways",
        ],
        "generic_phrases": [
            "click here", "learn more", "read more", "find out more", "see more", "here",
            "this article", "this page", "this post", "more info", "check it out",
            "discover more", "get started", "start here", "real estate",
            "mortgage financing", "financing options", "investment property",
        ],
        "connector_words": [
            "how", "guide", "benefits", "why", "steps", "strategy", "strategies", "process",
            "tips", "ways", "understanding",
        ],
        "brand_terms": [
            "lendcity", "lend city", "canada", "canadian", "ontario", "toronto",
        ],
    },
}


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
