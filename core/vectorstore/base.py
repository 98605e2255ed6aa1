"""
Abstract vector store interface.

A store holds named tables; every row is an EmbeddingRecord whose vector
length equals the table dimension. Records are immutable once inserted and
can only be removed by id.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class EmbeddingRecord:
    id: str
    kb_id: int
    file_id: int
    filename: str
    text: str
    vector: np.ndarray

    def meta(self) -> Dict[str, Any]:
        """Row without the vector (one meta.jsonl line)."""
        return {
            "id": self.id,
            "kb_id": self.kb_id,
            "file_id": self.file_id,
            "filename": self.filename,
            "text": self.text,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.meta()
        data["vector"] = [float(x) for x in self.vector]
        return data


@dataclass(frozen=True)
class SearchHit:
    record: EmbeddingRecord
    distance: float


class VectorStore(ABC):
    """
    Subclasses must implement table management, insert, search, delete
    and list_records. Operations on a missing table raise NotFoundError.
    """

    @abstractmethod
    def table_names(self) -> List[str]:
        pass

    def has_table(self, name: str) -> bool:
        return name in self.table_names()

    @abstractmethod
    def create_table(self, name: str, dim: int) -> bool:
        """Create ``name`` if absent. Returns True if a table was created."""
        pass

    @abstractmethod
    def drop_table(self, name: str) -> bool:
        """Drop ``name`` if present. Returns True if a table was dropped."""
        pass

    @abstractmethod
    def insert(self, name: str, record: EmbeddingRecord) -> None:
        pass

    @abstractmethod
    def search(self, name: str, vector: np.ndarray, limit: int = 1, kb_id: Optional[int] = None) -> List[SearchHit]:
        """
        Nearest rows by L2 distance, closest first.

        Args:
            name: Table name
            vector: Query vector of the table dimension
            limit: Maximum number of hits
            kb_id: Only consider rows of this knowledge base
        """
        pass

    @abstractmethod
    def delete(self, name: str, record_id: str, kb_id: Optional[int] = None) -> bool:
        """Delete one row by id. Unknown ids are a no-op returning False."""
        pass

    @abstractmethod
    def list_records(self, name: str) -> List[EmbeddingRecord]:
        pass
