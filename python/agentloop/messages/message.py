import uuid

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class ConversationRole(Enum):
  USER = "user"
  SYSTEM = "system"
  ASSISTANT = "assistant"
  TOOL = "tool"


# Roles a caller may put in a request. SYSTEM is reserved for the engine.
CALLER_ROLES = frozenset({ConversationRole.USER, ConversationRole.ASSISTANT, ConversationRole.TOOL})


@dataclass(frozen=True)
class FunctionToolCall:
  name: str
  arguments: str = ""


@dataclass(frozen=True)
class ToolCall:
  id: str
  function: FunctionToolCall
  type: str = "function"

  @property
  def name(self) -> str:
    return self.function.name

  @property
  def arguments(self) -> str:
    return self.function.arguments


def new_tool_call_id() -> str:
  return f"call_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ChatMessage:
  """
  One entry of a conversation.

  Messages are values: the engine appends new ones to the history and never
  mutates existing ones.
  """

  role: ConversationRole
  content: str = ""
  sender_name: Optional[str] = None
  tool_call_id: Optional[str] = None
  tool_calls: Tuple[ToolCall, ...] = field(default_factory=tuple)
  is_error: bool = False

  @staticmethod
  def user(content: str) -> "ChatMessage":
    return ChatMessage(ConversationRole.USER, content)

  @staticmethod
  def system(content: str) -> "ChatMessage":
    return ChatMessage(ConversationRole.SYSTEM, content)

  @staticmethod
  def assistant(content: str, sender_name: Optional[str] = None, tool_calls=()) -> "ChatMessage":
    return ChatMessage(ConversationRole.ASSISTANT, content or "", sender_name, tool_calls=tuple(tool_calls))

  @staticmethod
  def tool_result(
    tool_call_id: str, content: str, sender_name: Optional[str] = None, is_error: bool = False
  ) -> "ChatMessage":
    return ChatMessage(ConversationRole.TOOL, content, sender_name, tool_call_id=tool_call_id, is_error=is_error)

  @property
  def has_tool_calls(self) -> bool:
    return len(self.tool_calls) > 0
