"""
Brute-force vector store backed by numpy.

Each table is an (N, D) float32 matrix plus a list of row metadata. With a
directory configured, every table is persisted as:

    <directory>/<table>/embeddings.npy   shape (N, D)
    <directory>/<table>/meta.jsonl       one JSON object per row
    <directory>/<table>/config.json      {"dim": D}

Without a directory the store is purely in-memory.
"""

import json
import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from ..errors import NotFoundError, StoreError
from .base import EmbeddingRecord, SearchHit, VectorStore

logger = logging.getLogger("ragserve.vectorstore")


class _Table:

    def __init__(self, dim: int):
        self.dim = dim
        self.embeddings = np.zeros((0, dim), dtype=np.float32)
        self.meta: List[dict] = []

    def replaced(self, embeddings: np.ndarray, meta: List[dict]) -> "_Table":
        table = _Table(self.dim)
        table.embeddings = embeddings
        table.meta = meta
        return table

    def record(self, row: int) -> EmbeddingRecord:
        m = self.meta[row]
        return EmbeddingRecord(
            id=m["id"],
            kb_id=m["kb_id"],
            file_id=m["file_id"],
            filename=m["filename"],
            text=m["text"],
            vector=self.embeddings[row].copy(),
        )


class NumpyVectorStore(VectorStore):
    """
    Args:
        directory: Persistence root, or None for an in-memory store
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory) if directory else None
        self._tables: Dict[str, _Table] = {}
        self._lock = threading.RLock()
        if self.directory is not None:
            self._load_all()

    # ---- persistence ----
    def _load_all(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        for table_dir in sorted(self.directory.iterdir()):
            config_path = table_dir / "config.json"
            if not config_path.is_file():
                continue
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    dim = int(json.load(f)["dim"])
                table = _Table(dim)
                emb_path = table_dir / "embeddings.npy"
                if emb_path.exists():
                    table.embeddings = np.load(emb_path).astype(np.float32).reshape(-1, dim)
                meta_path = table_dir / "meta.jsonl"
                if meta_path.exists():
                    with open(meta_path, 'r', encoding='utf-8') as f:
                        table.meta = [json.loads(line) for line in f if line.strip()]
            except (OSError, ValueError, KeyError) as e:
                raise StoreError(f"Corrupt vector table {table_dir}: {e}") from e
            if len(table.meta) != len(table.embeddings):
                raise StoreError(
                    f"Mismatch in {table_dir}: {len(table.embeddings)} embeddings "
                    f"vs {len(table.meta)} metadata entries"
                )
            self._tables[table_dir.name] = table
        logger.info(f"Loaded {len(self._tables)} vector tables from {self.directory}")

    def _commit(self, name: str, table: _Table) -> None:
        """Persist ``table`` as the new state of ``name``, then swap it in memory."""
        if self.directory is not None:
            self._write(name, table)
        self._tables[name] = table

    def _write(self, name: str, table: _Table) -> None:
        table_dir = self.directory / name
        staged = []
        try:
            table_dir.mkdir(parents=True, exist_ok=True)
            # Every file is written to a .tmp sibling first and renamed at the end
            with open(table_dir / "config.json.tmp", 'w', encoding='utf-8') as f:
                staged.append("config.json")
                json.dump({"dim": table.dim}, f)
            with open(table_dir / "embeddings.npy.tmp", 'wb') as f:
                staged.append("embeddings.npy")
                np.save(f, table.embeddings)
            with open(table_dir / "meta.jsonl.tmp", 'w', encoding='utf-8') as f:
                staged.append("meta.jsonl")
                for m in table.meta:
                    f.write(json.dumps(m, ensure_ascii=False) + "\n")
            for filename in staged:
                os.replace(table_dir / f"{filename}.tmp", table_dir / filename)
        except OSError as e:
            for filename in staged:
                tmp = table_dir / f"{filename}.tmp"
                if tmp.exists():
                    tmp.unlink()
            raise StoreError(f"Failed to persist vector table {name}: {e}") from e

    def _table(self, name: str) -> _Table:
        table = self._tables.get(name)
        if table is None:
            raise NotFoundError(f"Table {name} not found")
        return table

    # ---- VectorStore API ----
    def table_names(self) -> List[str]:
        with self._lock:
            return sorted(self._tables)

    def create_table(self, name: str, dim: int) -> bool:
        with self._lock:
            if name in self._tables:
                return False
            self._commit(name, _Table(dim))
            logger.debug(f"Created table {name} (dim={dim})")
            return True

    def drop_table(self, name: str) -> bool:
        with self._lock:
            if self._tables.pop(name, None) is None:
                return False
            if self.directory is not None:
                shutil.rmtree(self.directory / name, ignore_errors=True)
            logger.debug(f"Dropped table {name}")
            return True

    def insert(self, name: str, record: EmbeddingRecord) -> None:
        with self._lock:
            table = self._table(name)
            vector = np.asarray(record.vector, dtype=np.float32).reshape(-1)
            if vector.shape[0] != table.dim:
                raise StoreError(f"Vector length {vector.shape[0]} does not match table {name} dim {table.dim}")
            self._commit(name, table.replaced(
                np.vstack([table.embeddings, vector[None, :]]),
                table.meta + [record.meta()],
            ))

    def search(self, name: str, vector: np.ndarray, limit: int = 1, kb_id: Optional[int] = None) -> List[SearchHit]:
        with self._lock:
            table = self._table(name)
            query = np.asarray(vector, dtype=np.float32).reshape(-1)
            if query.shape[0] != table.dim:
                raise StoreError(f"Query length {query.shape[0]} does not match table {name} dim {table.dim}")

            rows = np.arange(len(table.meta))
            if kb_id is not None:
                rows = np.array([i for i, m in enumerate(table.meta) if m["kb_id"] == kb_id], dtype=np.int64)
            if rows.size == 0 or limit <= 0:
                return []

            distances = np.linalg.norm(table.embeddings[rows] - query, axis=1)
            # Stable sort keeps insertion order among equal distances
            order = np.argsort(distances, kind="stable")[:limit]
            return [SearchHit(table.record(int(rows[i])), float(distances[i])) for i in order]

    def delete(self, name: str, record_id: str, kb_id: Optional[int] = None) -> bool:
        with self._lock:
            table = self._table(name)
            for row, m in enumerate(table.meta):
                if m["id"] == record_id and (kb_id is None or m["kb_id"] == kb_id):
                    self._commit(name, table.replaced(
                        np.delete(table.embeddings, row, axis=0),
                        table.meta[:row] + table.meta[row + 1:],
                    ))
                    return True
            return False

    def list_records(self, name: str) -> List[EmbeddingRecord]:
        with self._lock:
            table = self._table(name)
            return [table.record(i) for i in range(len(table.meta))]
