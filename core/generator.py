"""
Autoregressive decode loop.

A GenerationSession owns everything mutable about one request: the token
history, the sampler RNG, the incremental detokenizer and a private clone
of the model's cache. Sessions are single-use.

    READY --first pull--> DECODING --eos / sample_len--> DONE
                              |
                              +------engine failure-----> FAILED

Usage:
    generator = Generator(model)
    text = generator.generate(GenerationSettings(prompt="Hello", temperature=0))

    for fragment in generator.new_session(settings).stream():
        print(fragment, end="")
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from .errors import EngineError
from .sampling import LogitsProcessor, apply_repeat_penalty
from .token_stream import TokenOutputStream

logger = logging.getLogger("ragserve.generator")

DEFAULT_SEED = 299792458


@dataclass
class GenerationSettings:
    """Sampling controls for one session."""
    prompt: str = ""
    temperature: Optional[float] = 0.8  # 0 or None = greedy
    top_p: Optional[float] = None
    seed: int = DEFAULT_SEED
    repeat_penalty: float = 1.1  # 1.0 = disabled
    repeat_last_n: int = 64
    sample_len: int = 128


class GenerationState(str, Enum):
    READY = "ready"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"


class GenerationSession:

    def __init__(self, model, settings: GenerationSettings):
        self.model = model.clone()
        self.settings = settings
        self.state = GenerationState.READY
        self.all_tokens: List[int] = []
        self.index = 0
        self.eos_token: Optional[int] = None
        self.prompt_tokens = 0
        self.generated_tokens = 0
        self.finish_reason: Optional[str] = None
        self._processor = LogitsProcessor(settings.seed, settings.temperature, settings.top_p)
        self._detok = TokenOutputStream(model.tokenizer)

    def _prepare(self) -> None:
        self.eos_token = self.model.eos_token_id
        tokens = self.model.encode(self.settings.prompt)
        self.all_tokens.extend(tokens)
        self.prompt_tokens = len(tokens)

    def _next_token(self) -> int:
        if self.index == 0:
            context, position = list(self.all_tokens), 0
        else:
            context, position = self.all_tokens[-1:], len(self.all_tokens) - 1

        logits = self.model.forward(context, position)

        if self.settings.repeat_penalty != 1.0:
            start = max(len(self.all_tokens) - self.settings.repeat_last_n, 0)
            logits = apply_repeat_penalty(logits, self.settings.repeat_penalty, self.all_tokens[start:])

        self.index += 1
        return self._processor.sample(logits)

    def iter_fragments(self) -> Iterator[str]:
        """
        Lazily decode. Each pull runs at most one forward pass.

        Raises:
            EngineError: on any tokenizer, model or sampler failure
        """
        if self.state is not GenerationState.READY:
            return
        self.state = GenerationState.DECODING
        started = time.time()
        try:
            self._prepare()
            while self.index < self.settings.sample_len:
                token = self._next_token()
                self.all_tokens.append(token)
                if token == self.eos_token:
                    self.finish_reason = "stop"
                    break
                self.generated_tokens += 1
                text = self._detok.next_token(token)
                if text:
                    yield text
            else:
                self.finish_reason = "length"

            rest = self._detok.decode_rest()
            if rest:
                yield rest
        except EngineError:
            self.state = GenerationState.FAILED
            raise
        except Exception as e:
            self.state = GenerationState.FAILED
            raise EngineError(f"Generation failed at step {self.index}: {e}") from e
        finally:
            if self.state is GenerationState.DECODING:
                self.state = GenerationState.DONE

        elapsed = time.time() - started
        rate = self.generated_tokens / elapsed if elapsed > 0 else 0.0
        logger.debug(
            f"Session done: prompt={self.prompt_tokens} generated={self.generated_tokens} "
            f"finish={self.finish_reason} ({rate:.1f} tok/s)"
        )

    def generate(self) -> str:
        """Decode to completion. Errors propagate."""
        return "".join(self.iter_fragments())

    def stream(self) -> Iterator[str]:
        """Decode lazily. An engine failure ends the stream; it is logged, not raised."""
        try:
            yield from self.iter_fragments()
        except EngineError as e:
            logger.error(f"Stream aborted after {self.generated_tokens} tokens: {e}", exc_info=e)


class Generator:
    """
    Session factory around a shared, read-only model.

    Args:
        model: LanguageModel instance
    """

    def __init__(self, model):
        self.model = model

    def new_session(self, settings: GenerationSettings) -> GenerationSession:
        return GenerationSession(self.model, settings)

    def generate(self, settings: GenerationSettings) -> str:
        return self.new_session(settings).generate()

    def stream(self, settings: GenerationSettings) -> Iterator[str]:
        return self.new_session(settings).stream()
