"""
Prompt construction.

Serializes an ordered conversation into the single prompt string a given
model family was trained on. Two delimiter styles are supported:

    MISTRAL    [INST] ... [/INST] instruction blocks (Mistral, Zephyr)
    ROLE_TAGS  <|SYSTEM|> / <|USER|> / <|ASSISTANT|> tags (everything else)

Usage:
    builder = PromptBuilder.for_family(ModelFamily.MISTRAL_7B_INSTRUCT_V02)
    prompt = builder.build([SystemMessage("S"), UserMessage("U")])
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable

from .messages import (
    AssistantMessage,
    ChatMessage,
    SystemMessage,
    ToolMessage,
    UserMessage,
)

BOS = "<s>"
EOS = "</s>"

SYSTEM_TAG = "<|SYSTEM|>"
USER_TAG = "<|USER|>"
ASSISTANT_TAG = "<|ASSISTANT|>"
TOOL_TAG = "<|TOOL|>"

INST_OPEN = "[INST] "
INST_CLOSE = " [/INST]"
# Canned exchange that follows a system message in the Mistral template
MISTRAL_SYSTEM_REPLY = " Hi [/INST] Hello! how can I help you</s>"


class PromptStyle(str, Enum):
    MISTRAL = "mistral"
    ROLE_TAGS = "role_tags"


class ModelFamily(str, Enum):
    MISTRAL_7B_INSTRUCT = "mistral-7b-instruct"
    MISTRAL_7B_INSTRUCT_V02 = "mistral-7b-instruct-v0.2"
    ZEPHYR_7B_ALPHA = "zephyr-7b-alpha"
    ZEPHYR_7B_BETA = "zephyr-7b-beta"
    OPEN_CHAT_35 = "openchat-3.5"
    PHI_2 = "phi-2"
    GEMMA = "gemma"
    NONE = "none"


@dataclass(frozen=True)
class ModelProfile:
    """Per-family prompt and decoding conventions."""
    style: PromptStyle
    eos_token: str = EOS


MODEL_PROFILES: Dict[ModelFamily, ModelProfile] = {
    ModelFamily.MISTRAL_7B_INSTRUCT: ModelProfile(PromptStyle.MISTRAL),
    ModelFamily.MISTRAL_7B_INSTRUCT_V02: ModelProfile(PromptStyle.MISTRAL),
    ModelFamily.ZEPHYR_7B_ALPHA: ModelProfile(PromptStyle.MISTRAL),
    ModelFamily.ZEPHYR_7B_BETA: ModelProfile(PromptStyle.MISTRAL),
    ModelFamily.OPEN_CHAT_35: ModelProfile(PromptStyle.ROLE_TAGS, eos_token="<|end_of_turn|>"),
    ModelFamily.PHI_2: ModelProfile(PromptStyle.ROLE_TAGS),
    ModelFamily.GEMMA: ModelProfile(PromptStyle.ROLE_TAGS),
    ModelFamily.NONE: ModelProfile(PromptStyle.ROLE_TAGS),
}


def get_profile(family) -> ModelProfile:
    """Resolve a family (enum member or its string value) to its profile."""
    try:
        return MODEL_PROFILES[ModelFamily(family)]
    except ValueError:
        raise ValueError(
            f"Unknown model family: {family}. "
            f"Available: {[f.value for f in ModelFamily]}"
        ) from None


class PromptBuilder:
    """Pure conversation -> prompt serializer for one delimiter style."""

    def __init__(self, style: PromptStyle):
        self.style = PromptStyle(style)

    @classmethod
    def for_family(cls, family) -> "PromptBuilder":
        return cls(get_profile(family).style)

    def build(self, messages: Iterable[ChatMessage]) -> str:
        out = []
        for i, message in enumerate(messages):
            if message.content is None:
                continue
            if i == 0 and isinstance(message, (SystemMessage, UserMessage)):
                out.append(BOS)
            if self.style is PromptStyle.MISTRAL:
                out.append(self._mistral(message))
            else:
                out.append(self._role_tags(message))
        return "".join(out)

    @staticmethod
    def _mistral(message: ChatMessage) -> str:
        if isinstance(message, SystemMessage):
            return f"{INST_OPEN}{message.content}{MISTRAL_SYSTEM_REPLY}"
        if isinstance(message, UserMessage):
            return f"{INST_OPEN}{message.text()}{INST_CLOSE}"
        if isinstance(message, AssistantMessage):
            return message.content
        if isinstance(message, ToolMessage):
            return f"{TOOL_TAG}{message.content}"
        raise TypeError(f"Unsupported message type: {type(message).__name__}")

    @staticmethod
    def _role_tags(message: ChatMessage) -> str:
        if isinstance(message, SystemMessage):
            return f"{SYSTEM_TAG}{message.content}"
        if isinstance(message, UserMessage):
            return f"{USER_TAG}{message.text()}"
        if isinstance(message, AssistantMessage):
            return f"{ASSISTANT_TAG}{message.content}"
        if isinstance(message, ToolMessage):
            return f"{TOOL_TAG}{message.content}"
        raise TypeError(f"Unsupported message type: {type(message).__name__}")


def build_prompt(messages: Iterable[ChatMessage], family) -> str:
    """Convenience wrapper: ``PromptBuilder.for_family(family).build(messages)``."""
    return PromptBuilder.for_family(family).build(messages)
