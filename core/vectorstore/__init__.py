"""
Vector store module - named tables of embedding records with exact search.
"""

from .base import EmbeddingRecord, SearchHit, VectorStore
from .numpy_store import NumpyVectorStore

__all__ = ["EmbeddingRecord", "SearchHit", "VectorStore", "NumpyVectorStore"]
