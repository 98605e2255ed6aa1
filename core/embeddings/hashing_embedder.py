"""
Hashed character n-gram embedder.

Deterministic and offline: every n-gram is hashed into one of ``dim``
buckets, counts are accumulated and the result is L2-normalized. Semantic
quality is modest, but identical texts always map to identical vectors,
which is what exact retrieval needs.
"""

import hashlib
from typing import List, Tuple

import numpy as np

from .base import EmbeddingModel

HASH_SEED = b"ragserve_embedder_v1"


class HashingEmbedder(EmbeddingModel):
    """
    Args:
        dim: Embedding dimension (default: 1024)
        ngram_range: (min_n, max_n) character n-gram sizes
        lowercase: Lowercase text before hashing
    """

    def __init__(self, dim: int = 1024, ngram_range: Tuple[int, int] = (2, 5), lowercase: bool = True):
        if dim <= 0:
            raise ValueError(f"dim must be positive, got {dim}")
        self._dim = dim
        self.ngram_range = ngram_range
        self.lowercase = lowercase

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def name(self) -> str:
        return f"hashing-{self._dim}"

    def _bucket(self, ngram: str) -> int:
        digest = hashlib.md5(HASH_SEED + ngram.encode('utf-8', errors='replace')).digest()
        return int.from_bytes(digest[:8], byteorder='little') % self._dim

    def _ngrams(self, text: str) -> List[str]:
        if self.lowercase:
            text = text.lower()
        min_n, max_n = self.ngram_range
        grams = []
        for n in range(min_n, max_n + 1):
            grams.extend(text[i:i + n] for i in range(len(text) - n + 1))
        # Short inputs still get a non-zero vector
        if not grams and text:
            grams.append(text)
        return grams

    def embed(self, text: str) -> np.ndarray:
        vec = np.zeros(self._dim, dtype=np.float32)
        for gram in self._ngrams(text):
            vec[self._bucket(gram)] += 1.0
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec


def build_embedder(config) -> EmbeddingModel:
    """Create the embedder named by an ``EmbeddingConfig``."""
    if config.model != "hashing":
        raise ValueError(f"Unknown embedding model: {config.model}")
    return HashingEmbedder(dim=config.dim, ngram_range=(config.ngram_min, config.ngram_max))
