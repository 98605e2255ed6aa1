"""
Conversation message types.

A chat request is an ordered list of messages. Each message is one of
four roles; user content may be plain text or a sequence of parts
(text spans and image references).
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class TextPart:
    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class ImagePart:
    url: str
    detail: Optional[str] = None

    def render(self) -> str:
        if self.detail:
            return f"<IMAGE {self.url}> ({self.detail})"
        return f"<IMAGE {self.url}>"


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str
    type: str = "function"


@dataclass(frozen=True)
class SystemMessage:
    content: Optional[str] = None
    name: Optional[str] = None
    role: str = field(default="system", init=False)

    def text(self) -> Optional[str]:
        return self.content


@dataclass(frozen=True)
class UserMessage:
    """User turn. ``content`` is a string or a tuple of content parts."""

    content: Union[str, Tuple[ContentPart, ...], None] = None
    name: Optional[str] = None
    role: str = field(default="user", init=False)

    @property
    def is_multipart(self) -> bool:
        return isinstance(self.content, tuple)

    def text(self) -> Optional[str]:
        if self.content is None:
            return None
        if self.is_multipart:
            return "".join(part.render() for part in self.content)
        return self.content


@dataclass(frozen=True)
class AssistantMessage:
    content: Optional[str] = None
    name: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    role: str = field(default="assistant", init=False)

    def text(self) -> Optional[str]:
        return self.content


@dataclass(frozen=True)
class ToolMessage:
    content: Optional[str] = None
    tool_call_id: str = ""
    role: str = field(default="tool", init=False)

    def text(self) -> Optional[str]:
        return self.content


ChatMessage = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


def with_content(message: ChatMessage, content: str) -> ChatMessage:
    """Return a copy of ``message`` with its content replaced by plain text."""
    if isinstance(message, SystemMessage):
        return SystemMessage(content=content, name=message.name)
    if isinstance(message, UserMessage):
        return UserMessage(content=content, name=message.name)
    if isinstance(message, AssistantMessage):
        return AssistantMessage(content=content, name=message.name, tool_calls=message.tool_calls)
    return ToolMessage(content=content, tool_call_id=message.tool_call_id)
