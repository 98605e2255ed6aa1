"""
Storage module - relational metadata (SQLModel) and filesystem blobs.
"""

from .blobs import FileBlobStore
from .metadata import FILE_PURPOSE, KnowledgeBase, KnowledgeFile, MetadataStore

__all__ = ["FileBlobStore", "FILE_PURPOSE", "KnowledgeBase", "KnowledgeFile", "MetadataStore"]
