"""
Retrieval for knowledge-base scoped chat.

Embeds the last message, finds the single nearest record in the knowledge
base's vector table and splices its text into that message.

Usage:
    retriever = Retriever(vectors, embedder)
    messages = retriever.augment(kb_id, messages)
"""

import logging
from typing import List, Sequence

from ..embeddings import EmbeddingModel
from ..errors import MalformedRequestError, NotFoundError
from ..messages import ChatMessage, with_content
from ..vectorstore import SearchHit, VectorStore
from .knowledge_store import kb_table_name

logger = logging.getLogger("ragserve.retriever")

CONTEXT_TEMPLATE = "{original} answer question use the following information: {retrieved}"


class Retriever:
    """
    Args:
        vectors: Vector store with one table per knowledge base
        embedder: Must be the embedder used at ingestion time
        top_k: Number of records spliced into the prompt
    """

    def __init__(self, vectors: VectorStore, embedder: EmbeddingModel, top_k: int = 1):
        self.vectors = vectors
        self.embedder = embedder
        self.top_k = top_k

    def search(self, kb_id: int, query: str, limit: int = None) -> List[SearchHit]:
        table = kb_table_name(kb_id)
        if not self.vectors.has_table(table):
            raise NotFoundError(f"Knowledge base table {table} not found")
        return self.vectors.search(table, self.embedder.embed(query), limit=limit or self.top_k, kb_id=kb_id)

    def augment(self, kb_id: int, messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """
        Return a copy of ``messages`` whose last entry carries retrieved context.

        Raises:
            MalformedRequestError: no messages, or the last one has no text
            NotFoundError: missing table or no matching record
        """
        if not messages:
            raise MalformedRequestError("messages must not be empty")
        last = messages[-1]
        query = last.text()
        if not query:
            raise MalformedRequestError("last message has no text content")

        hits = self.search(kb_id, query)
        if not hits:
            raise NotFoundError(f"No documents found in knowledge base {kb_id}")

        retrieved = " ".join(hit.record.text for hit in hits)
        logger.debug(
            f"Retrieved {len(hits)} record(s) for kb {kb_id}: "
            + ", ".join(f"{h.record.filename} (d={h.distance:.3f})" for h in hits)
        )
        augmented = CONTEXT_TEMPLATE.format(original=query, retrieved=retrieved)
        return list(messages[:-1]) + [with_content(last, augmented)]
