"""
Language model adapters.

The decode loop only needs ``forward(tokens, position) -> logits`` plus a
tokenizer, so model architectures live outside this package. A model may keep
incremental state keyed by absolute position; ``clone()`` hands each
generation session a private copy of that state while sharing the weights.
"""

import copy
import logging
import os
from abc import ABC, abstractmethod
from typing import List

import torch

from .errors import EngineError
from .prompt import ModelFamily, get_profile
from .tokenizer import Tokenizer

logger = logging.getLogger("ragserve.model")


class LanguageModel(ABC):
    """
    Abstract autoregressive model.

    Subclasses must implement:
    - forward(tokens, position) -> 1D logits over the vocabulary
    """

    def __init__(self, family, tokenizer: Tokenizer):
        self.family = ModelFamily(family)
        self.profile = get_profile(self.family)
        self.tokenizer = tokenizer

    @abstractmethod
    def forward(self, tokens: List[int], position: int) -> torch.Tensor:
        """
        Run the model on ``tokens`` placed at absolute ``position``.

        Args:
            tokens: Token ids to append to the session context
            position: Absolute index of ``tokens[0]`` in the sequence

        Returns:
            torch.Tensor of shape (vocab_size,) with next-token logits
        """
        pass

    def clone(self) -> "LanguageModel":
        """Session-scoped copy. Weights are shared; per-session caches are not."""
        return copy.copy(self)

    @property
    def eos_token_id(self) -> int:
        token_id = self.tokenizer.token_to_id(self.profile.eos_token)
        if token_id is None:
            raise EngineError(f"EOS token {self.profile.eos_token!r} not in vocabulary")
        return token_id

    @property
    def name(self) -> str:
        return self.family.value

    def encode(self, text: str) -> List[int]:
        return self.tokenizer.encode(text)

    def decode(self, ids: List[int]) -> str:
        return self.tokenizer.decode(ids)


class TorchScriptModel(LanguageModel):
    """
    Adapter for a serialized ``torch.jit`` module mapping (1, T) token ids to
    (1, T, vocab) logits (a tuple whose first item is the logits also works).

    The module is stateless, so the adapter keeps the token context itself and
    re-runs the visible window each step, cropped to ``context_window``.
    """

    def __init__(self, family, tokenizer: Tokenizer, module, device: str = "cpu", context_window: int = 1024):
        super().__init__(family, tokenizer)
        self.module = module
        self.device = device
        self.context_window = context_window
        self._context: List[int] = []

    def forward(self, tokens: List[int], position: int) -> torch.Tensor:
        if position > len(self._context):
            raise EngineError(
                f"Position {position} is past the cached context ({len(self._context)} tokens)"
            )
        del self._context[position:]
        self._context.extend(tokens)
        if not self._context:
            raise EngineError("Empty context")

        window = self._context[-self.context_window:]
        idx = torch.tensor([window], dtype=torch.long, device=self.device)
        with torch.inference_mode():
            out = self.module(idx)
        if isinstance(out, (tuple, list)):
            out = out[0]
        return out[0, -1, :].float()

    def clone(self) -> "TorchScriptModel":
        twin = copy.copy(self)
        twin._context = []
        return twin


def resolve_device(device: str) -> str:
    """Fall back to CPU when CUDA is requested but unavailable."""
    if device.startswith("cuda") and not torch.cuda.is_available():
        logger.warning(f"Device {device} requested but CUDA is unavailable, using cpu")
        return "cpu"
    return device


def load_language_model(config) -> TorchScriptModel:
    """
    Build the serving model from a ``ModelConfig``.

    Raises:
        EngineError: if the model file is missing or cannot be deserialized
    """
    if not config.model_path or not os.path.exists(config.model_path):
        raise EngineError(f"Model file not found: {config.model_path}")

    device = resolve_device(config.device)
    tokenizer = Tokenizer(kind=config.tokenizer)
    try:
        module = torch.jit.load(config.model_path, map_location=device)
    except (RuntimeError, ValueError) as e:
        raise EngineError(f"Failed to load {config.model_path}: {e}") from e
    module.eval()

    logger.info(
        f"Loaded {config.family} from {config.model_path} "
        f"(device={device}, tokenizer={config.tokenizer}, vocab={tokenizer.vocab_size})"
    )
    return TorchScriptModel(
        config.family, tokenizer, module, device=device, context_window=config.context_window
    )
