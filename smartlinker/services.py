"""Service functions that connect the Django app to the link engine.

The engine keeps its caches in memory, so one instance is built per
process from ``settings.SMARTLINKER`` and reused by every request. The
views only ever obtain it through :func:`get_engine`, which makes the
engine easy to replace in tests.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Mapping

from django.conf import settings

from .engine.clients import HttpAnalysisService, HttpEmbeddingService, HttpVectorIndex
from .engine.config import load_config
from .engine.errors import ValidationError
from .engine.index import LinkEngine
from .engine.types import LinkRequest, as_id_tuple

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('sourceId', 'content', 'title')


def build_engine(options: Mapping[str, Any]) -> LinkEngine:
    """Construct a :class:`LinkEngine` from a settings dictionary.

    Raises
    ------
    ConfigurationError
        When the vector index or embedding credentials are missing.
    """

    config = load_config(options.get('ENGINE_CONFIG'))
    timeouts = config.section('timeouts')
    index = HttpVectorIndex(
        options.get('VECTOR_INDEX_URL'),
        options.get('VECTOR_INDEX_API_KEY'),
        timeout=float(timeouts.get('vector_index', 10.0)),
    )
    embedder = HttpEmbeddingService(
        options.get('EMBEDDING_API_KEY'),
        base_url=options.get('EMBEDDING_API_URL') or 'https://api.openai.com/v1',
        model=options.get('EMBEDDING_MODEL') or 'text-embedding-3-small',
        timeout=float(timeouts.get('embedding', 15.0)),
    )
    analysis = None
    if options.get('ANALYSIS_API_URL'):
        analysis = HttpAnalysisService(
            options.get('ANALYSIS_API_URL'),
            options.get('ANALYSIS_API_KEY'),
            timeout=float(timeouts.get('analysis', 20.0)),
        )
    else:
        logger.info('ANALYSIS_API_URL not set; source tags fall back to defaults')
    return LinkEngine(index, embedder, analysis, config)


@lru_cache(maxsize=1)
def get_engine() -> LinkEngine:
    """Return the process-wide engine, building it on first use."""

    return build_engine(getattr(settings, 'SMARTLINKER', {}))


def missing_fields(payload: Mapping[str, Any]) -> list[str]:
    """Return the required request fields that are absent or blank."""

    missing = []
    for name in REQUIRED_FIELDS:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def request_from_cleaned(cleaned: Dict[str, Any]) -> LinkRequest:
    """Build an engine request from ``SmartLinkForm.cleaned_data``."""

    min_score = cleaned.get('min_score')
    return LinkRequest(
        source_id=str(cleaned['source_id']),
        content=cleaned['content'],
        title=cleaned['title'],
        topic_cluster=cleaned.get('topic_cluster') or None,
        related_clusters=tuple(cleaned.get('related_clusters') or ()),
        funnel_stage=cleaned.get('funnel_stage') or None,
        target_persona=cleaned.get('target_persona') or None,
        difficulty_level=cleaned.get('difficulty_level') or None,
        content_lifespan=cleaned.get('content_lifespan') or None,
        content_type=cleaned.get('content_type') or 'post',
        max_links=cleaned.get('max_links') or 5,
        min_score=float(min_score) if min_score is not None else None,
        exclude_ids=as_id_tuple(cleaned.get('exclude_ids')),
        auto_insert=bool(cleaned.get('auto_insert')),
        strict_silo=bool(cleaned.get('strict_silo')),
        skip_cache=bool(cleaned.get('skip_cache')),
    )


def validate_payload(payload: Mapping[str, Any]) -> None:
    missing = missing_fields(payload)
    if missing:
        raise ValidationError(missing)
