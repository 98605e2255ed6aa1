"""
Knowledge-base management and ingestion.

A knowledge base is a metadata row plus one vector table named kb_<id>.
Uploaded files are stored as blobs and only become searchable once
ingested: the whole file is embedded as a single record (no chunking).

Usage:
    store = KnowledgeStore(metadata, blobs, vectors, embedder)
    kb, existed = store.create_kb("docs")
    f = store.upload_file(kb.id, "a.txt", b"hello world")
    record = store.ingest(kb.id, f.id)
"""

import logging
import uuid
from typing import List, Tuple

from ..embeddings import EmbeddingModel
from ..errors import MalformedRequestError, NotFoundError
from ..storage import FileBlobStore, KnowledgeBase, KnowledgeFile, MetadataStore
from ..vectorstore import EmbeddingRecord, VectorStore

logger = logging.getLogger("ragserve.knowledge")


def kb_table_name(kb_id: int) -> str:
    return f"kb_{kb_id}"


class KnowledgeStore:
    """
    Args:
        metadata: Relational store for knowledge bases and files
        blobs: Filesystem store for uploaded file contents
        vectors: Vector store holding one table per knowledge base
        embedder: Embedding model used at ingestion time
    """

    def __init__(self, metadata: MetadataStore, blobs: FileBlobStore, vectors: VectorStore, embedder: EmbeddingModel):
        self.metadata = metadata
        self.blobs = blobs
        self.vectors = vectors
        self.embedder = embedder

    # ---- knowledge bases ----
    def create_kb(self, name: str) -> Tuple[KnowledgeBase, bool]:
        name = (name or "").strip()
        if not name:
            raise MalformedRequestError("Knowledge base name must not be empty")
        kb, existed = self.metadata.create_kb(name)
        if self.vectors.create_table(kb_table_name(kb.id), self.embedder.dim):
            logger.info(f"Created knowledge base {name!r} (id={kb.id})")
        return kb, existed

    def list_kbs(self) -> List[KnowledgeBase]:
        return self.metadata.list_kbs()

    def require_kb(self, kb_id: int) -> KnowledgeBase:
        kb = self.metadata.get_kb(kb_id)
        if kb is None:
            raise NotFoundError(f"Knowledge base {kb_id} not found")
        return kb

    def delete_kb(self, kb_id: int) -> KnowledgeBase:
        kb = self.require_kb(kb_id)
        self.vectors.drop_table(kb_table_name(kb_id))
        self.metadata.delete_kb(kb_id)
        self.blobs.delete_kb(kb_id)
        logger.info(f"Deleted knowledge base {kb.name!r} (id={kb_id})")
        return kb

    # ---- files ----
    def upload_file(self, kb_id: int, filename: str, data: bytes) -> KnowledgeFile:
        self.require_kb(kb_id)
        path = self.blobs.write(kb_id, filename, data)
        row = self.metadata.upsert_file(kb_id, path.name, len(data))
        logger.info(f"Uploaded {path.name} to kb {kb_id} ({len(data)} bytes, file_id={row.id})")
        return row

    def list_files(self, kb_id: int) -> List[KnowledgeFile]:
        self.require_kb(kb_id)
        return self.metadata.list_files(kb_id)

    def require_file(self, kb_id: int, file_id: int) -> KnowledgeFile:
        row = self.metadata.get_file(kb_id, file_id)
        if row is None:
            raise NotFoundError(f"File {file_id} not found in knowledge base {kb_id}")
        return row

    def delete_file(self, kb_id: int, file_id: int) -> KnowledgeFile:
        """Remove blob and row. Embedding records of the file are kept."""
        row = self.require_file(kb_id, file_id)
        self.blobs.delete(kb_id, row.filename)
        self.metadata.delete_file(kb_id, file_id)
        logger.info(f"Deleted file {row.filename} (id={file_id}) from kb {kb_id}")
        return row

    # ---- embeddings ----
    def ingest(self, kb_id: int, file_id: int) -> EmbeddingRecord:
        """Embed a stored file as one record. Re-ingesting adds another record."""
        self.require_kb(kb_id)
        row = self.require_file(kb_id, file_id)
        try:
            data = self.blobs.read(kb_id, row.filename)
        except FileNotFoundError:
            raise NotFoundError(f"Blob for file {file_id} is missing") from None

        text = data.decode("utf-8", errors="replace")
        record = EmbeddingRecord(
            id=str(uuid.uuid4()),
            kb_id=kb_id,
            file_id=file_id,
            filename=row.filename,
            text=text,
            vector=self.embedder.embed(text),
        )
        self.vectors.insert(kb_table_name(kb_id), record)
        logger.info(f"Ingested {row.filename} into kb {kb_id} (record={record.id}, chars={len(text)})")
        return record

    def list_embeddings(self, kb_id: int) -> List[EmbeddingRecord]:
        self.require_kb(kb_id)
        return self.vectors.list_records(kb_table_name(kb_id))

    def delete_embedding(self, kb_id: int, embedding_id: str) -> bool:
        self.require_kb(kb_id)
        deleted = self.vectors.delete(kb_table_name(kb_id), embedding_id, kb_id=kb_id)
        logger.debug(f"Delete embedding {embedding_id} from kb {kb_id}: {'ok' if deleted else 'not found'}")
        return deleted
