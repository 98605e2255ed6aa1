"""
Next-token selection.

Sampling Strategy:
    1. Apply repetition penalty to tokens seen in the recent window
    2. temperature == 0  -> greedy argmax (seed is irrelevant)
    3. otherwise scale by 1/temperature, softmax
    4. optional nucleus (top-p) truncation
    5. draw from a seeded torch.Generator
"""

from typing import Iterable, Optional

import torch
import torch.nn.functional as F


def apply_repeat_penalty(logits: torch.Tensor, penalty: float, context: Iterable[int]) -> torch.Tensor:
    """
    Penalize every distinct token id in ``context``.

    Non-negative logits are divided by ``penalty``, negative ones multiplied,
    so the token always becomes less likely. Returns a new tensor.
    """
    vocab = logits.size(-1)
    ids = sorted({t for t in context if 0 <= t < vocab})
    if not ids or penalty == 1.0:
        return logits
    index = torch.tensor(ids, dtype=torch.long, device=logits.device)
    selected = logits.index_select(0, index)
    penalized = torch.where(selected >= 0, selected / penalty, selected * penalty)
    out = logits.clone()
    out.scatter_(0, index, penalized)
    return out


class LogitsProcessor:
    """
    Seeded token sampler.

    Args:
        seed: RNG seed for stochastic sampling
        temperature: 0 (or None) selects argmax
        top_p: nucleus threshold, ignored unless 0 < top_p < 1
    """

    def __init__(self, seed: int, temperature: Optional[float] = None, top_p: Optional[float] = None):
        self.seed = seed
        self.temperature = temperature
        self.top_p = top_p
        self.generator = torch.Generator(device="cpu")
        self.generator.manual_seed(seed)

    @property
    def is_greedy(self) -> bool:
        return self.temperature is None or self.temperature == 0

    def sample(self, logits: torch.Tensor) -> int:
        logits = logits.detach().to("cpu", torch.float32).reshape(-1)
        if self.is_greedy:
            return int(torch.argmax(logits).item())

        probs = F.softmax(logits / self.temperature, dim=-1)
        if self.top_p is not None and 0.0 < self.top_p < 1.0:
            probs = self._top_p(probs)
        return int(torch.multinomial(probs, num_samples=1, generator=self.generator).item())

    def _top_p(self, probs: torch.Tensor) -> torch.Tensor:
        # Keep the most likely tokens until their mass reaches top_p; the token
        # that crosses the threshold is kept.
        sorted_probs, sorted_indices = torch.sort(probs, descending=True)
        mass_before = torch.cumsum(sorted_probs, dim=-1) - sorted_probs
        sorted_probs = sorted_probs.masked_fill(mass_before >= self.top_p, 0.0)
        return torch.zeros_like(probs).scatter(0, sorted_indices, sorted_probs)
