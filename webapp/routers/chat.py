"""
Chat API Router - OpenAI-compatible chat completions

Endpoints:
- POST /v1/chat/completions - plain chat (batch JSON or SSE stream)
- POST /v1/knowledgebases/{kb_id}/chat/completions - chat grounded on a knowledge base

Streaming responses are ``text/event-stream`` with one ``data: {json}`` event per
fragment. The stream ends by closing the connection; there is no [DONE] event.
"""

import asyncio
import time
import uuid
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from core.rag import CompletionOptions
from core.stop_filter import StopFilter

from webapp.context import AppContext, get_context
from webapp.logging_config import DebugLogger, is_debug_mode
from webapp.schemas import (
    AssistantReply,
    ChatChoice,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChunkChoice,
    Delta,
    Usage,
)

router = APIRouter()
log = DebugLogger("chat")


def _options(body: ChatCompletionRequest) -> CompletionOptions:
    return CompletionOptions(
        temperature=body.temperature,
        top_p=body.top_p,
        seed=body.seed,
        repeat_penalty=body.frequency_penalty,
        max_tokens=body.max_tokens,
        stop=body.stop_words(),
    )


async def _event_stream(
    gate: StopFilter, completion_id: str, created: int, model: str, delay_ms: int
) -> AsyncIterator[str]:
    fragments = 0
    step = None
    try:
        while True:
            # One decode step per pull; keep it off the event loop. The step is
            # shielded so a client disconnect cannot orphan a running pull.
            step = asyncio.ensure_future(run_in_threadpool(next, gate, None))
            fragment = await asyncio.shield(step)
            if fragment is None:
                break
            fragments += 1
            chunk = ChatCompletionChunk(
                id=completion_id,
                choices=[ChunkChoice(delta=Delta(content=fragment))],
                created=created,
                model=model,
            )
            yield f"data: {chunk.model_dump_json()}\n\n"
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
    finally:
        if step is not None and not step.done():
            await asyncio.wait([step])
        gate.close()
        log.response(200, id=completion_id, stream=True, fragments=fragments)


async def run_chat(body: ChatCompletionRequest, ctx: AppContext, kb_id: Optional[int] = None):
    messages = body.chat_messages()
    options = _options(body)
    completion_id = f"chatcmpl-{uuid.uuid4().hex}"
    created = int(time.time())
    model = ctx.model_name

    if body.stream:
        gate = await run_in_threadpool(ctx.pipeline.stream, messages, options, kb_id)
        return StreamingResponse(
            _event_stream(gate, completion_id, created, model, ctx.config.generation.stream_delay_ms),
            media_type="text/event-stream",
        )

    start = time.time()
    completion = await run_in_threadpool(ctx.pipeline.complete, messages, options, kb_id)
    elapsed = time.time() - start
    if is_debug_mode():
        log.debug(f"Completion text: {completion.text!r}")
    log.response(
        200,
        id=completion_id,
        tokens=completion.completion_tokens,
        finish=completion.finish_reason,
        time=f"{elapsed:.2f}s",
    )
    return ChatCompletionResponse(
        id=completion_id,
        choices=[
            ChatChoice(
                message=AssistantReply(content=completion.text),
                finish_reason=completion.finish_reason,
            )
        ],
        created=created,
        model=model,
        usage=Usage(
            completion_tokens=completion.completion_tokens,
            prompt_tokens=completion.prompt_tokens,
            total_tokens=completion.total_tokens,
        ),
    )


@router.post("/chat/completions")
async def chat_completions(body: ChatCompletionRequest, ctx: AppContext = Depends(get_context)):
    log.request("POST", "/v1/chat/completions", messages=len(body.messages), stream=body.stream)
    return await run_chat(body, ctx)


@router.post("/knowledgebases/{kb_id}/chat/completions")
async def kb_chat_completions(kb_id: int, body: ChatCompletionRequest, ctx: AppContext = Depends(get_context)):
    log.request("POST", f"/v1/knowledgebases/{kb_id}/chat/completions", messages=len(body.messages), stream=body.stream)
    return await run_chat(body, ctx, kb_id=kb_id)
