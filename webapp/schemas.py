"""
Request and response models for the OpenAI-compatible API.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from core import __version__
from core.messages import (
    AssistantMessage,
    ChatMessage,
    ImagePart,
    SystemMessage,
    TextPart,
    ToolCall,
    ToolMessage,
    UserMessage,
)

SYSTEM_FINGERPRINT = f"ragserve-{__version__}"


# ============================================================================
# Chat messages
# ============================================================================

class TextContentPart(BaseModel):
    type: Literal["text"]
    text: str


class ImageUrl(BaseModel):
    url: str
    detail: Optional[str] = None


class ImageContentPart(BaseModel):
    type: Literal["image_url"]
    image_url: Union[str, ImageUrl]

    def to_part(self) -> ImagePart:
        if isinstance(self.image_url, str):
            return ImagePart(url=self.image_url)
        return ImagePart(url=self.image_url.url, detail=self.image_url.detail)


ContentPart = Annotated[Union[TextContentPart, ImageContentPart], Field(discriminator="type")]


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""


class ToolCallIn(BaseModel):
    id: str
    type: str = "function"
    function: FunctionCall


class SystemMessageIn(BaseModel):
    role: Literal["system"]
    content: Optional[str] = None
    name: Optional[str] = None

    def to_message(self) -> ChatMessage:
        return SystemMessage(content=self.content, name=self.name)


class UserMessageIn(BaseModel):
    role: Literal["user"]
    content: Union[str, List[ContentPart], None] = None
    name: Optional[str] = None

    def to_message(self) -> ChatMessage:
        if isinstance(self.content, list):
            parts = tuple(
                TextPart(p.text) if isinstance(p, TextContentPart) else p.to_part()
                for p in self.content
            )
            return UserMessage(content=parts, name=self.name)
        return UserMessage(content=self.content, name=self.name)


class AssistantMessageIn(BaseModel):
    role: Literal["assistant"]
    content: Optional[str] = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCallIn]] = None

    def to_message(self) -> ChatMessage:
        calls = tuple(
            ToolCall(id=c.id, name=c.function.name, arguments=c.function.arguments, type=c.type)
            for c in (self.tool_calls or [])
        )
        return AssistantMessage(content=self.content, name=self.name, tool_calls=calls)


class ToolMessageIn(BaseModel):
    role: Literal["tool"]
    content: Optional[str] = None
    tool_call_id: str

    def to_message(self) -> ChatMessage:
        return ToolMessage(content=self.content, tool_call_id=self.tool_call_id)


MessageIn = Annotated[
    Union[SystemMessageIn, UserMessageIn, AssistantMessageIn, ToolMessageIn],
    Field(discriminator="role"),
]


class ChatCompletionRequest(BaseModel):
    messages: List[MessageIn]
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0)
    top_p: Optional[float] = Field(default=None, gt=0, le=1)
    seed: Optional[int] = None
    frequency_penalty: Optional[float] = Field(default=None, gt=0)
    max_tokens: Optional[int] = Field(default=None, ge=0)
    stop: Union[str, List[str], None] = None
    stream: bool = False
    user: Optional[str] = None

    def chat_messages(self) -> List[ChatMessage]:
        return [m.to_message() for m in self.messages]

    def stop_words(self) -> List[str]:
        if self.stop is None:
            return []
        if isinstance(self.stop, str):
            return [self.stop]
        return list(self.stop)


# ============================================================================
# Chat responses
# ============================================================================

class AssistantReply(BaseModel):
    role: str = "assistant"
    content: str


class ChatChoice(BaseModel):
    index: int = 0
    message: AssistantReply
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    completion_tokens: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    id: str
    choices: List[ChatChoice]
    created: int
    model: str
    object: str = "text_completion"
    system_fingerprint: str = SYSTEM_FINGERPRINT
    usage: Usage


class Delta(BaseModel):
    content: str
    role: str = "assistant"


class ChunkChoice(BaseModel):
    index: int = 0
    delta: Delta
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    id: str
    choices: List[ChunkChoice]
    created: int
    model: str
    system_fingerprint: str = SYSTEM_FINGERPRINT
    object: str = "text_completion"


# ============================================================================
# Embeddings
# ============================================================================

class EmbeddingRequest(BaseModel):
    input: Union[str, List[str]]
    model: Optional[str] = None

    def texts(self) -> List[str]:
        return [self.input] if isinstance(self.input, str) else list(self.input)


class EmbeddingData(BaseModel):
    object: str = "embedding"
    embedding: List[float]
    index: int


class EmbeddingUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingResponse(BaseModel):
    object: str = "list"
    embeddings: List[EmbeddingData]
    model: str
    usage: EmbeddingUsage


# ============================================================================
# Knowledge bases
# ============================================================================

class CreateKnowledgeBaseRequest(BaseModel):
    name: str = Field(min_length=1)
