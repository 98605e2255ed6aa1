"""
Chat pipeline - glues retrieval, prompt building, decoding and stop filtering.

The pipeline:
1. Validates the request (before touching model or stores)
2. Optionally augments the last message from a knowledge base
3. Builds the family-specific prompt
4. Decodes through a fresh GenerationSession
5. Gates the output with a StopFilter

Usage:
    pipeline = ChatPipeline(model, retriever, defaults)
    result = pipeline.complete(messages, CompletionOptions(max_tokens=64))

    for fragment in pipeline.stream(messages, options, kb_id=3):
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import GenerationDefaults
from ..errors import EngineError, MalformedRequestError
from ..generator import GenerationSession, GenerationSettings
from ..messages import ChatMessage
from ..prompt import PromptBuilder
from ..stop_filter import StopFilter
from .retriever import Retriever

logger = logging.getLogger("ragserve.pipeline")


@dataclass
class CompletionOptions:
    """Per-request overrides; None falls back to GenerationDefaults."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    seed: Optional[int] = None
    repeat_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: List[str] = field(default_factory=list)


@dataclass
class Completion:
    text: str
    finish_reason: str
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class PreparedChat:
    session: GenerationSession
    stop: List[str]


class ChatPipeline:
    """
    Args:
        model: LanguageModel, or None when no model is configured
        retriever: Retriever for knowledge-base scoped requests
        defaults: Sampling defaults
    """

    def __init__(self, model, retriever: Optional[Retriever] = None, defaults: Optional[GenerationDefaults] = None):
        self.model = model
        self.retriever = retriever
        self.defaults = defaults or GenerationDefaults()
        self.prompt_builder = PromptBuilder.for_family(model.family) if model is not None else None

    def settings_for(self, prompt: str, options: CompletionOptions) -> GenerationSettings:
        d = self.defaults
        temperature = d.temperature if options.temperature is None else options.temperature
        max_tokens = d.max_tokens if options.max_tokens is None else options.max_tokens
        if temperature < 0:
            raise MalformedRequestError(f"temperature must be >= 0, got {temperature}")
        if max_tokens < 0:
            raise MalformedRequestError(f"max_tokens must be >= 0, got {max_tokens}")
        if options.top_p is not None and not 0.0 < options.top_p <= 1.0:
            raise MalformedRequestError(f"top_p must be in (0, 1], got {options.top_p}")
        return GenerationSettings(
            prompt=prompt,
            temperature=temperature,
            top_p=options.top_p,
            seed=d.seed if options.seed is None else options.seed,
            repeat_penalty=d.repeat_penalty if options.repeat_penalty is None else options.repeat_penalty,
            repeat_last_n=d.repeat_last_n,
            sample_len=max_tokens,
        )

    def prepare(self, messages: Sequence[ChatMessage], options: CompletionOptions, kb_id: Optional[int] = None) -> PreparedChat:
        if not messages:
            raise MalformedRequestError("messages must not be empty")
        settings = self.settings_for("", options)
        if self.model is None:
            raise EngineError("No language model loaded")

        if kb_id is not None:
            if self.retriever is None:
                raise EngineError("Retrieval is not configured")
            messages = self.retriever.augment(kb_id, messages)

        settings.prompt = self.prompt_builder.build(messages)
        logger.debug(f"Prompt ({len(settings.prompt)} chars, kb={kb_id}): {settings.prompt[:200]!r}")
        return PreparedChat(GenerationSession(self.model, settings), list(options.stop))

    def complete(self, messages: Sequence[ChatMessage], options: CompletionOptions, kb_id: Optional[int] = None) -> Completion:
        """Run to completion. Engine errors propagate."""
        prepared = self.prepare(messages, options, kb_id)
        gate = StopFilter(prepared.session.iter_fragments(), prepared.stop)
        text = "".join(gate)
        session = prepared.session
        finish_reason = "stop" if gate.matched is not None else (session.finish_reason or "stop")
        return Completion(
            text=text,
            finish_reason=finish_reason,
            prompt_tokens=session.prompt_tokens,
            completion_tokens=session.generated_tokens,
        )

    def stream(self, messages: Sequence[ChatMessage], options: CompletionOptions, kb_id: Optional[int] = None) -> StopFilter:
        """
        Lazy fragment stream. Request errors raise here, before the first
        fragment; engine errors later simply end the stream.
        """
        prepared = self.prepare(messages, options, kb_id)
        return StopFilter(prepared.session.stream(), prepared.stop)
