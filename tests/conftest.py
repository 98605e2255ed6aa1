"""
Shared fixtures and fakes for the ragserve test suite.

The fakes avoid any model download: tokenization is byte-level and the
language model replays a fixed script of tokens.
"""

import copy
import sys
from pathlib import Path

import pytest
import torch

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.config import AppConfig
from core.embeddings import HashingEmbedder
from core.model import LanguageModel
from core.storage import FileBlobStore, MetadataStore
from core.tokenizer import Tokenizer
from core.vectorstore import NumpyVectorStore


class ScriptedLanguageModel(LanguageModel):
    """
    Emits ``script`` token by token, then EOS.

    Every forward call is recorded in ``calls`` as (tokens, position); the
    list is shared between clones so tests can inspect what sessions did.
    """

    def __init__(self, script, family="none", fail_at=None, peak=10.0):
        super().__init__(family, Tokenizer(kind="bytes"))
        self.script = list(script)
        self.fail_at = fail_at
        self.peak = peak
        self.calls = []
        self._step = 0

    @classmethod
    def from_text(cls, text, **kwargs):
        return cls(list(text.encode("utf-8")), **kwargs)

    def forward(self, tokens, position):
        self.calls.append((list(tokens), position))
        if self.fail_at is not None and self._step == self.fail_at:
            raise RuntimeError("forward pass exploded")
        target = self.script[self._step] if self._step < len(self.script) else self.eos_token_id
        self._step += 1
        logits = torch.zeros(self.tokenizer.vocab_size)
        logits[target] = self.peak
        return logits

    def clone(self):
        twin = copy.copy(self)
        twin._step = 0
        return twin

    def prompts(self):
        """Decoded prompt of every session (first forward call at position 0)."""
        return [self.tokenizer.decode(tokens) for tokens, position in self.calls if position == 0]


class RecordingEmbedder(HashingEmbedder):
    """Hashing embedder that counts calls."""

    def __init__(self, dim=1024):
        super().__init__(dim=dim)
        self.embedded = []

    def embed(self, text):
        self.embedded.append(text)
        return super().embed(text)


@pytest.fixture
def scripted_model():
    return ScriptedLanguageModel.from_text


@pytest.fixture
def embedder():
    return RecordingEmbedder()


@pytest.fixture
def metadata(tmp_path):
    return MetadataStore(f"sqlite:///{tmp_path / 'meta.db'}")


@pytest.fixture
def blobs(tmp_path):
    return FileBlobStore(str(tmp_path / "files"))


@pytest.fixture
def vectors():
    return NumpyVectorStore()


@pytest.fixture
def app_config(tmp_path):
    config = AppConfig()
    config.generation.stream_delay_ms = 0
    config.storage.database_url = f"sqlite:///{tmp_path / 'meta.db'}"
    config.storage.blob_dir = str(tmp_path / "files")
    config.storage.vector_dir = str(tmp_path / "vectors")
    return config
