"""
Application context - every long-lived handle the routers need.

Built once at startup, stored on ``app.state.context`` and injected into
route handlers with ``Depends(get_context)``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from core.config import AppConfig
from core.embeddings import EmbeddingModel, build_embedder
from core.model import LanguageModel, load_language_model
from core.rag import ChatPipeline, KnowledgeStore, Retriever
from core.storage import FileBlobStore, MetadataStore
from core.vectorstore import NumpyVectorStore, VectorStore

from webapp.logging_config import get_logger

log = get_logger("context")


@dataclass
class AppContext:
    config: AppConfig
    model: Optional[LanguageModel]
    embedder: EmbeddingModel
    vectors: VectorStore
    knowledge: KnowledgeStore
    retriever: Retriever
    pipeline: ChatPipeline

    @property
    def model_name(self) -> str:
        return self.model.name if self.model is not None else "none"

    @classmethod
    def build(
        cls,
        config: AppConfig,
        model: Optional[LanguageModel],
        embedder: EmbeddingModel,
        vectors: VectorStore,
        metadata: MetadataStore,
        blobs: FileBlobStore,
    ) -> "AppContext":
        """Wire components together (tests pass fakes here)."""
        knowledge = KnowledgeStore(metadata, blobs, vectors, embedder)
        retriever = Retriever(vectors, embedder)
        pipeline = ChatPipeline(model, retriever, config.generation)
        return cls(
            config=config,
            model=model,
            embedder=embedder,
            vectors=vectors,
            knowledge=knowledge,
            retriever=retriever,
            pipeline=pipeline,
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "AppContext":
        model = None
        if config.model.model_path:
            model = load_language_model(config.model)
        else:
            log.warning("No model.model_path configured - chat completions are disabled")

        embedder = build_embedder(config.embedding)
        log.info(f"Embedder: {embedder.name} (dim={embedder.dim})")
        return cls.build(
            config,
            model=model,
            embedder=embedder,
            vectors=NumpyVectorStore(config.storage.vector_dir),
            metadata=MetadataStore(config.storage.database_url),
            blobs=FileBlobStore(config.storage.blob_dir),
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
