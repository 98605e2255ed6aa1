"""
Embeddings & Models API Router

Endpoints:
- POST /v1/embeddings - embed one or more strings
- GET /v1/models - list the loaded language and embedding models
"""

import time

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from webapp.context import AppContext, get_context
from webapp.logging_config import DebugLogger
from webapp.schemas import EmbeddingData, EmbeddingRequest, EmbeddingResponse, EmbeddingUsage

router = APIRouter()
log = DebugLogger("embeddings")

_started = int(time.time())


@router.post("/embeddings")
async def create_embeddings(body: EmbeddingRequest, ctx: AppContext = Depends(get_context)):
    texts = body.texts()
    log.request("POST", "/v1/embeddings", inputs=len(texts))
    vectors = await run_in_threadpool(ctx.embedder.embed_batch, texts)
    tokens = sum(ctx.embedder.count_tokens(t) for t in texts)
    return EmbeddingResponse(
        embeddings=[
            EmbeddingData(embedding=[float(x) for x in vec], index=i)
            for i, vec in enumerate(vectors)
        ],
        model=ctx.embedder.name,
        usage=EmbeddingUsage(prompt_tokens=tokens, total_tokens=tokens),
    )


@router.get("/models")
async def list_models(ctx: AppContext = Depends(get_context)):
    data = []
    if ctx.model is not None:
        data.append({"id": ctx.model_name, "object": "model", "created": _started, "owned_by": "ragserve", "type": "llm"})
    data.append({"id": ctx.embedder.name, "object": "model", "created": _started, "owned_by": "ragserve", "type": "embedding"})
    return {"object": "list", "data": data}
