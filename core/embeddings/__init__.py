"""
Embeddings module - text -> fixed-dimension vector backends.

Supports:
- HashingEmbedder: CPU-only hashed character n-gram embeddings
"""

from .base import EmbeddingModel
from .hashing_embedder import HashingEmbedder, build_embedder

__all__ = ["EmbeddingModel", "HashingEmbedder", "build_embedder"]
