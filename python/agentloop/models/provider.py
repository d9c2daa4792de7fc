from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ..messages.message import ChatMessage, ToolCall


@dataclass(frozen=True)
class ModelTurn:
  """A complete assistant answer: text and any tool-call requests."""

  content: str = ""
  tool_calls: Tuple[ToolCall, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ModelDelta:
  """
  One piece of a streamed answer.

  Text arrives in ``content``. Tool calls are only reported once complete, on
  the delta that ends the stream.
  """

  content: str = ""
  tool_calls: Tuple[ToolCall, ...] = field(default_factory=tuple)
  finished: bool = False


@runtime_checkable
class Provider(Protocol):
  provider_id: str

  def supports_streaming(self) -> bool: ...

  async def generate(self, model: str, messages: Sequence[ChatMessage], tools: Optional[List[dict]] = None) -> ModelTurn: ...

  def stream_generate(
    self, model: str, messages: Sequence[ChatMessage], tools: Optional[List[dict]] = None
  ) -> AsyncIterator[ModelDelta]: ...
