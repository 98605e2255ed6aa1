"""
ragserve Core - retrieval-augmented generation serving primitives.

Turns a conversation (plus an optional knowledge base) into a model prompt,
runs the autoregressive decode loop and gates the output for stop sequences.

Quick Start:
    >>> from core import Generator, GenerationSettings, PromptBuilder, ModelFamily
    >>> from core.messages import UserMessage
    >>>
    >>> prompt = PromptBuilder.for_family(ModelFamily.PHI_2).build([UserMessage("Hello")])
    >>> text = Generator(model).generate(GenerationSettings(prompt=prompt, temperature=0))

Public API:
    Prompting:
        PromptBuilder, ModelFamily, PromptStyle
    Decoding:
        Generator, GenerationSession, GenerationSettings, StopFilter
    Models:
        LanguageModel, TorchScriptModel, Tokenizer
    Errors:
        ServiceError and subclasses
"""

__version__ = "0.1.0"
__author__ = "ragserve Contributors"

from .errors import EngineError, MalformedRequestError, NotFoundError, ServiceError, StoreError
from .prompt import ModelFamily, ModelProfile, PromptBuilder, PromptStyle, build_prompt
from .tokenizer import Tokenizer
from .model import LanguageModel, TorchScriptModel, load_language_model
from .generator import GenerationSession, GenerationSettings, GenerationState, Generator
from .stop_filter import StopFilter

__all__ = [
    "EngineError",
    "MalformedRequestError",
    "NotFoundError",
    "ServiceError",
    "StoreError",
    "ModelFamily",
    "ModelProfile",
    "PromptBuilder",
    "PromptStyle",
    "build_prompt",
    "Tokenizer",
    "LanguageModel",
    "TorchScriptModel",
    "load_language_model",
    "GenerationSession",
    "GenerationSettings",
    "GenerationState",
    "Generator",
    "StopFilter",
]
