"""Shared fixtures and fakes for engine tests."""

from __future__ import annotations

import asyncio
import math
from typing import Any, Dict, List, Sequence

import pytest

from smartlinker.engine.clients import InMemoryVectorIndex
from smartlinker.engine.config import load_config
from smartlinker.engine.document import TextDocument
from smartlinker.engine.errors import UpstreamUnavailable
from smartlinker.engine.types import CatalogEntry, LinkRequest

QUERY_VECTOR = [1.0, 0.0]


@pytest.fixture()
def engine_config():
    """Provide a fresh copy of the default engine configuration."""

    return load_config(None)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


class FakeEmbedder:
    """Returns the same unit vector for every text and counts calls."""

    def __init__(self, vector: Sequence[float] = QUERY_VECTOR) -> None:
        self.vector = list(vector)
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vector)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.extend(texts)
        return [list(self.vector) for _ in texts]


class CountingIndex(InMemoryVectorIndex):
    """In-memory index that counts queries and can pause or fail them."""

    def __init__(self, delay: float = 0.0, error: Exception | None = None) -> None:
        super().__init__()
        self.delay = delay
        self.error = error
        self.queries = 0

    async def query(self, vector, top_k, filter=None, exclude_ids=()):
        self.queries += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return await super().query(vector, top_k, filter=filter, exclude_ids=exclude_ids)


class FailingAnalysis:
    async def analyze(self, title: str, content: str) -> Dict[str, Any]:
        raise UpstreamUnavailable("analysis service", "HTTP 503")


def vector_with_similarity(similarity: float) -> List[float]:
    """Return a vector whose cosine with ``QUERY_VECTOR`` equals ``similarity``."""

    return [similarity, math.sqrt(max(0.0, 1.0 - similarity * similarity))]


def make_metadata(entry_id: str, title: str, url: str, **fields: Any) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "postId": entry_id,
        "title": title,
        "url": url,
        "contentType": "post",
    }
    metadata.update(fields)
    return metadata


def make_entry(entry_id: str, title: str, url: str | None = None, **fields: Any) -> CatalogEntry:
    return CatalogEntry.from_metadata(entry_id, make_metadata(entry_id, title, url or f"https://example.com/{entry_id}", **fields))


async def seed(index: InMemoryVectorIndex, *records: tuple[Dict[str, Any], float]) -> None:
    for metadata, similarity in records:
        await index.upsert(metadata["postId"], vector_with_similarity(similarity), metadata)


def make_request(content: str, **overrides: Any) -> LinkRequest:
    values: Dict[str, Any] = {
        "source_id": "1",
        "content": content,
        "title": "Getting Started With the BRRRR Method",
        "topic_cluster": "brrrr-strategy",
        "funnel_stage": "awareness",
        "target_persona": "general",
        "difficulty_level": "intermediate",
        "content_lifespan": "evergreen",
        "max_links": 3,
    }
    values.update(overrides)
    return LinkRequest(**values)


def make_document(html: str) -> TextDocument:
    return TextDocument.from_html(html)
