"""
Abstract base class for embedding models.

Ingestion and retrieval only talk to EmbeddingModel, so backends can be
swapped without touching the knowledge store.
"""

from abc import ABC, abstractmethod
from typing import List

import numpy as np


class EmbeddingModel(ABC):
    """
    Text -> vector interface.

    Subclasses must implement:
    - embed(text) -> vector of shape (dim,)
    - dim property
    - name property
    """

    @property
    @abstractmethod
    def dim(self) -> int:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """
        Embed a single text.

        Returns:
            np.ndarray of shape (dim,), float32
        """
        pass

    def embed_batch(self, texts: List[str]) -> np.ndarray:
        """
        Embed several texts.

        Returns:
            np.ndarray of shape (len(texts), dim)
        """
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.stack([self.embed(t) for t in texts])

    def count_tokens(self, text: str) -> int:
        """Rough token count used for usage reporting."""
        return len(text.split())
