"""Clients for the external collaborators: vector index, embeddings, analysis.

The engine only talks to these through the protocols below. Each HTTP
implementation converts timeouts, transport errors, error statuses and
bodies that are not a JSON object into :class:`UpstreamUnavailable` so
callers can degrade instead of failing the request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, TypeVar

import httpx

from .errors import ConfigurationError, UpstreamUnavailable
from .text import vector_cosine
from .types import ids_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

VECTOR_ID_PREFIX = "article-"


@dataclass(frozen=True)
class VectorMatch:
    """One nearest-neighbour hit returned by the vector index."""

    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    async def upsert(self, entry_id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None: ...

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
        exclude_ids: Sequence[str] = (),
    ) -> List[VectorMatch]: ...

    async def fetch(self, entry_id: str) -> Optional[Dict[str, Any]]: ...

    async def delete(self, entry_id: str) -> None: ...

    async def update_metadata(self, entry_id: str, metadata: Mapping[str, Any]) -> None: ...


class EmbeddingService(Protocol):
    async def embed(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]: ...


class AnalysisService(Protocol):
    async def analyze(self, title: str, content: str) -> Dict[str, Any]: ...


async def call_with_timeout(service: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await ``awaitable`` within ``timeout`` seconds or raise UpstreamUnavailable."""

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise UpstreamUnavailable(service, f"no response within {timeout:g}s") from exc


async def _request_json(
    client: httpx.AsyncClient,
    service: str,
    method: str,
    path: str,
    **kwargs: Any,
) -> Dict[str, Any]:
    try:
        response = await client.request(method, path, **kwargs)
    except httpx.TimeoutException as exc:
        raise UpstreamUnavailable(service, "request timed out") from exc
    except httpx.TransportError as exc:
        raise UpstreamUnavailable(service, str(exc)) from exc
    if response.status_code in (401, 403):
        logger.error("%s rejected the credentials (HTTP %d)", service, response.status_code)
    if response.is_error:
        raise UpstreamUnavailable(service, f"HTTP {response.status_code}")
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamUnavailable(service, "response body is not JSON") from exc
    if not isinstance(data, dict):
        raise UpstreamUnavailable(service, f"expected a JSON object, got {type(data).__name__}")
    return data


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ConfigurationError(f"{name} is not configured")
    return value


class InMemoryVectorIndex:
    """Exact cosine search over vectors kept in a dict."""

    def __init__(self) -> None:
        self._records: Dict[str, Tuple[List[float], Dict[str, Any]]] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(self, entry_id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        stored = dict(metadata)
        stored.setdefault("postId", entry_id)
        self._records[str(entry_id)] = (list(vector), stored)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
        exclude_ids: Sequence[str] = (),
    ) -> List[VectorMatch]:
        excluded = {str(value) for value in exclude_ids}
        matches: List[VectorMatch] = []
        for entry_id, (stored_vector, metadata) in self._records.items():
            if entry_id in excluded:
                continue
            if filter and any(metadata.get(key) != value for key, value in filter.items()):
                continue
            score = vector_cosine(vector, stored_vector)
            matches.append(VectorMatch(id=entry_id, score=score, metadata=dict(metadata)))
        matches.sort(key=lambda match: (-match.score, ids_key(match.id)))
        return matches[:top_k]

    async def fetch(self, entry_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(str(entry_id))
        if record is None:
            return None
        return dict(record[1])

    async def delete(self, entry_id: str) -> None:
        self._records.pop(str(entry_id), None)

    async def update_metadata(self, entry_id: str, metadata: Mapping[str, Any]) -> None:
        record = self._records.get(str(entry_id))
        if record is None:
            return
        record[1].update(metadata)


class HttpVectorIndex:
    """Pinecone-style REST vector index."""

    service = "vector index"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=_require(base_url, "VECTOR_INDEX_URL"),
            headers={"Api-Key": _require(api_key, "VECTOR_INDEX_API_KEY")},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upsert(self, entry_id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        payload = {"vectors": [{"id": _vector_id(entry_id), "values": list(vector), "metadata": dict(metadata)}]}
        await _request_json(self._client, self.service, "POST", "/vectors/upsert", json=payload)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
        exclude_ids: Sequence[str] = (),
    ) -> List[VectorMatch]:
        query_filter: Dict[str, Any] = dict(filter or {})
        if exclude_ids:
            query_filter["postId"] = {"$nin": [str(value) for value in exclude_ids]}
        payload: Dict[str, Any] = {"vector": list(vector), "topK": top_k, "includeMetadata": True}
        if query_filter:
            payload["filter"] = query_filter
        data = await _request_json(self._client, self.service, "POST", "/query", json=payload)
        matches = []
        for item in data.get("matches", []):
            metadata = item.get("metadata") or {}
            entry_id = str(metadata.get("postId", _entry_id(item.get("id", ""))))
            matches.append(VectorMatch(id=entry_id, score=float(item.get("score", 0.0)), metadata=metadata))
        return matches

    async def fetch(self, entry_id: str) -> Optional[Dict[str, Any]]:
        vector_id = _vector_id(entry_id)
        data = await _request_json(self._client, self.service, "GET", "/vectors/fetch", params={"ids": vector_id})
        record = (data.get("vectors") or {}).get(vector_id)
        if not record:
            return None
        return dict(record.get("metadata") or {})

    async def delete(self, entry_id: str) -> None:
        await _request_json(self._client, self.service, "POST", "/vectors/delete", json={"ids": [_vector_id(entry_id)]})

    async def update_metadata(self, entry_id: str, metadata: Mapping[str, Any]) -> None:
        payload = {"id": _vector_id(entry_id), "setMetadata": dict(metadata)}
        await _request_json(self._client, self.service, "POST", "/vectors/update", json=payload)


class HttpEmbeddingService:
    """OpenAI-compatible embeddings endpoint."""

    service = "embedding service"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-small",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {_require(api_key, 'EMBEDDING_API_KEY')}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        data = await _request_json(
            self._client,
            self.service,
            "POST",
            "/embeddings",
            json={"model": self.model, "input": list(texts)},
        )
        items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
        if len(items) != len(texts):
            raise UpstreamUnavailable(self.service, f"expected {len(texts)} vectors, got {len(items)}")
        return [list(item["embedding"]) for item in items]


class HttpAnalysisService:
    """Language-model tagging endpoint returning structured source tags."""

    service = "analysis service"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        *,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=_require(base_url, "ANALYSIS_API_URL"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def analyze(self, title: str, content: str) -> Dict[str, Any]:
        data = await _request_json(
            self._client,
            self.service,
            "POST",
            "/analyze",
            json={"title": title, "content": content},
        )
        return data if isinstance(data, dict) else {}


def _vector_id(entry_id: str) -> str:
    return f"{VECTOR_ID_PREFIX}{entry_id}"


def _entry_id(vector_id: str) -> str:
    if vector_id.startswith(VECTOR_ID_PREFIX):
        return vector_id[len(VECTOR_ID_PREFIX):]
    return vector_id
