"""Embedding index: durable vector ids mapped to clipboard entry ids.

The vectors themselves are not kept. Only the ``vector id -> entry id``
table and the next-id counter are persisted, and similarity search goes
through a pluggable scorer. A real vector index can replace the scorer as
long as it keeps the id mapping contract.
"""

import hashlib
import logging
import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from clipboard_history.core.config import Settings
from clipboard_history.core.kv import KeyValueStore

logger = logging.getLogger(__name__)

NEXT_ID_KEY = b"__usearch_next_id"
MAPPING_PREFIX = b"__usearch_mapping_"

EMBEDDING_DIMENSIONS = 128
MAX_EMBEDDING_TOKENS = 32


def create_embedding(
    text: str,
    dimensions: int = EMBEDDING_DIMENSIONS,
    max_tokens: int = MAX_EMBEDDING_TOKENS,
) -> List[float]:
    """Hashed bag-of-words vector over the first ``max_tokens`` words.

    Each word spreads the first four bytes of its hash over four consecutive
    buckets; the result is L2-normalized.
    """
    embedding = [0.0] * dimensions

    for position, word in enumerate(text.split()[:max_tokens]):
        digest = hashlib.blake2b(word.encode("utf-8"), digest_size=8).digest()
        for i in range(4):
            embedding[(position * 4 + i) % dimensions] += digest[i] / 255.0

    norm = math.sqrt(sum(value * value for value in embedding))
    if norm > 0:
        embedding = [value / norm for value in embedding]

    return embedding


class SimilarityScorer(ABC):
    """Scores one candidate entry id against a tokenized query."""

    def tokenize(self, query: str) -> List[str]:
        return query.lower().split()

    @abstractmethod
    def score(self, tokens: Sequence[str], entry_id: str) -> float:
        """Relevance of ``entry_id``; zero or less drops it."""


class LexicalIdScorer(SimilarityScorer):
    """Counts query tokens that occur in the lowercase entry id."""

    def score(self, tokens: Sequence[str], entry_id: str) -> float:
        id_lower = entry_id.lower()
        return sum(1 for token in tokens if token in id_lower)


class EmbeddingIndex:
    """Vector id to entry id table on the shared key-value store."""

    def __init__(
        self,
        index_path: str,
        settings: Optional[Settings] = None,
        scorer: Optional[SimilarityScorer] = None,
    ):
        self.index_path = index_path
        self.settings = settings or Settings()
        self.scorer = scorer or LexicalIdScorer()

        self.kv: Optional[KeyValueStore] = None
        self.next_vector_id = 0
        self._initialized = False

    async def _ensure_initialized(self):
        """Open the store and load the persisted counter."""
        if self._initialized:
            return

        self.kv = KeyValueStore.open(self.index_path, self.settings)
        self.next_vector_id = self._load_next_id()
        self._initialized = True

    def _load_next_id(self) -> int:
        value = self.kv.get(NEXT_ID_KEY)
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            # Never hand out an id that is already mapped
            logger.warning("Corrupt vector id counter %r, recovering", value)
            mapped = [vector_id for vector_id, _ in self._mappings()]
            return max(mapped) + 1 if mapped else 0

    async def open(self) -> "EmbeddingIndex":
        await self._ensure_initialized()
        return self

    async def close(self):
        if self.kv is not None:
            self.kv.close()
        self.kv = None
        self._initialized = False

    async def __aenter__(self) -> "EmbeddingIndex":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def next_id(self) -> int:
        return self.next_vector_id

    def _mappings(self) -> List[Tuple[int, str]]:
        """All ``(vector id, entry id)`` pairs in vector id order."""
        mappings = []
        for key, value in self.kv.scan(MAPPING_PREFIX):
            try:
                vector_id = int(key[len(MAPPING_PREFIX):])
                entry_id = value.decode("utf-8")
            except (ValueError, UnicodeDecodeError):
                logger.warning("Skipping malformed mapping %r", key)
                continue
            mappings.append((vector_id, entry_id))

        # Keys are not zero-padded, so byte order puts 10 before 2
        mappings.sort()
        return mappings

    async def add(self, entry_id: str, content: str) -> Optional[int]:
        """Map the next vector id to ``entry_id``.

        Returns the vector id, or None when the write fails.
        """
        await self._ensure_initialized()

        embedding = create_embedding(content)
        vector_id = self.next_vector_id
        logger.debug(
            "Vector %d for %s (%d dims, not persisted)",
            vector_id,
            entry_id,
            len(embedding),
        )

        try:
            batch = self.kv.batch()
            batch.put(MAPPING_PREFIX + str(vector_id).encode("utf-8"), entry_id.encode("utf-8"))
            batch.put(NEXT_ID_KEY, str(vector_id + 1).encode("utf-8"))
            self.kv.write(batch)
        except Exception as e:
            logger.error("Failed to store mapping for %s: %s", entry_id, e)
            return None

        self.next_vector_id = vector_id + 1
        return vector_id

    async def search_similar(self, query: str, limit: int) -> List[str]:
        """Entry ids ranked by the scorer, best first."""
        await self._ensure_initialized()

        if limit <= 0:
            return []

        tokens = self.scorer.tokenize(query)
        scored = []
        for _, entry_id in self._mappings():
            score = self.scorer.score(tokens, entry_id)
            if score > 0:
                scored.append((score, entry_id))

        # sort is stable: equal scores keep vector id order
        scored.sort(key=lambda item: item[0], reverse=True)
        return [entry_id for _, entry_id in scored[:limit]]

    async def count(self) -> int:
        await self._ensure_initialized()

        return len(self._mappings())

    async def clear(self) -> bool:
        """Drop every mapping and reset the counter to zero."""
        await self._ensure_initialized()

        batch = self.kv.batch()
        for key in self.kv.keys(MAPPING_PREFIX):
            batch.delete(key)
        batch.put(NEXT_ID_KEY, b"0")

        try:
            self.kv.write(batch)
        except Exception as e:
            logger.error("Failed to clear index: %s", e)
            return False

        self.next_vector_id = 0
        return True
