"""
RAG (Retrieval-Augmented Generation) module.

Components:
- knowledge_store: knowledge bases, file uploads and ingestion
- retriever: nearest-record lookup and prompt augmentation
- pipeline: glue retriever + prompt + generator + stop filter

Usage:
    from core.rag import ChatPipeline, KnowledgeStore, Retriever

    retriever = Retriever(vectors, embedder)
    pipeline = ChatPipeline(model, retriever)
    answer = pipeline.complete(messages, CompletionOptions(), kb_id=1).text
"""

from .knowledge_store import KnowledgeStore, kb_table_name
from .retriever import CONTEXT_TEMPLATE, Retriever
from .pipeline import ChatPipeline, Completion, CompletionOptions

__all__ = [
    "KnowledgeStore",
    "kb_table_name",
    "Retriever",
    "CONTEXT_TEMPLATE",
    "ChatPipeline",
    "Completion",
    "CompletionOptions",
]
