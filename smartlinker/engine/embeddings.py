"""Embedding generation with a content-hash keyed cache."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Dict, List, Sequence

from .cache import PolicyCache
from .clients import EmbeddingService
from .text import collapse_whitespace

logger = logging.getLogger(__name__)

MAX_EMBEDDING_CHARS = 32000

_TAG_RE = re.compile(r"<[^>]+>")
_SHORTCODE_RE = re.compile(r"\[[^\]]*\]")
_URL_RE = re.compile(r"https?://\S+")


def clean_for_embedding(text: str) -> str:
    """Strip markup, shortcodes and URLs, then truncate for the embedding model."""

    cleaned = _TAG_RE.sub(" ", text or "")
    cleaned = _SHORTCODE_RE.sub(" ", cleaned)
    cleaned = _URL_RE.sub(" ", cleaned)
    return collapse_whitespace(cleaned)[:MAX_EMBEDDING_CHARS]


def content_hash(text: str) -> str:
    digest = hashlib.sha256(f"{text[:2000]}:{len(text)}".encode("utf-8"))
    return digest.hexdigest()


class CachedEmbedder:
    """Wrap an embedding service so identical text is only embedded once."""

    def __init__(self, service: EmbeddingService, cache: PolicyCache) -> None:
        self.service = service
        self.cache = cache

    async def embed(self, text: str) -> List[float]:
        cleaned = clean_for_embedding(text)
        key = content_hash(cleaned)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Embedding cache hit %s", key[:12])
            return cached
        vector = await self.service.embed(cleaned)
        self.cache[key] = vector
        return vector

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed many texts, sending only cache misses upstream, in input order."""

        cleaned = [clean_for_embedding(text) for text in texts]
        keys = [content_hash(text) for text in cleaned]
        found: Dict[str, List[float]] = {}
        misses: List[str] = []
        miss_keys: List[str] = []
        for key, text in zip(keys, cleaned):
            cached = self.cache.get(key)
            if cached is not None:
                found[key] = cached
            elif key not in miss_keys:
                misses.append(text)
                miss_keys.append(key)

        if misses:
            vectors = await self.service.embed_batch(misses)
            for key, vector in zip(miss_keys, vectors):
                self.cache[key] = vector
                found[key] = vector

        return [found[key] for key in keys]
