"""
Shared utilities for testing agentloop runs.

Scripted providers stand in for real model backends: each call pops the next
prepared answer, so a test fully controls every turn of a run.
"""

import asyncio

from contextlib import aclosing
from typing import Any, Dict, List, Optional

from agentloop.errors import ProviderError
from agentloop.messages.message import FunctionToolCall, ToolCall
from agentloop.models.provider import ModelDelta, ModelTurn, Provider


class MockProvider(Provider):
  """
  Provider answering from a script.

  Usage:
      # Plain answer
      provider = MockProvider([{"content": "Hello!"}])

      # Tool call, then the final answer
      provider = MockProvider([
          {"tool_calls": [{"name": "calculate", "arguments": '{"expr": "2+2"}'}]},
          {"content": "4"},
      ])

  Streaming yields the content one character at a time and reports the tool
  calls on the final delta.
  """

  def __init__(self, messages: List[Dict[str, Any]] = None, provider_id: str = "mock", streaming: bool = True):
    self.provided_messages = list(messages or [])
    self.provider_id = provider_id
    self.streaming = streaming
    self.call_count = 0
    self.stream_call_count = 0
    self.tool_call_counter = 0
    self.received_models: List[str] = []
    self.received_messages: List[list] = []
    self.received_tools: List[Optional[list]] = []
    self.streams_closed = 0

  def supports_streaming(self) -> bool:
    return self.streaming

  def next_message(self) -> Dict[str, Any]:
    if not self.provided_messages:
      return {"content": "Default MockProvider response"}
    return self.provided_messages.pop(0)

  def to_turn(self, provided: Dict[str, Any]) -> ModelTurn:
    tool_calls = []
    for call in provided.get("tool_calls", []):
      call_id = call.get("id", f"tool_call_{self.tool_call_counter}")
      self.tool_call_counter += 1
      tool_calls.append(ToolCall(call_id, FunctionToolCall(call["name"], call.get("arguments", ""))))
    return ModelTurn(provided.get("content", ""), tuple(tool_calls))

  def record(self, model, messages, tools):
    self.received_models.append(model)
    self.received_messages.append(list(messages))
    self.received_tools.append(tools)

  async def generate(self, model, messages, tools=None) -> ModelTurn:
    self.call_count += 1
    self.record(model, messages, tools)
    return self.to_turn(self.next_message())

  async def stream_generate(self, model, messages, tools=None):
    self.stream_call_count += 1
    self.record(model, messages, tools)
    turn = self.to_turn(self.next_message())
    try:
      for character in turn.content:
        yield ModelDelta(content=character)
      yield ModelDelta(tool_calls=turn.tool_calls, finished=True)
    finally:
      self.streams_closed += 1

  def add_messages(self, messages: List[Dict[str, Any]]):
    self.provided_messages.extend(messages)


class ErrorMockProvider(MockProvider):
  """Fails every call once ``fail_after`` calls have succeeded."""

  def __init__(self, messages=None, fail_after: int = 0, error: Exception = None, **kwargs):
    super().__init__(messages, **kwargs)
    self.fail_after = fail_after
    self.error = error or RuntimeError("Mock provider error")

  async def generate(self, model, messages, tools=None) -> ModelTurn:
    if self.call_count >= self.fail_after:
      self.call_count += 1
      raise self.error
    return await super().generate(model, messages, tools)


class BrokenStreamProvider(MockProvider):
  """Streams ``fragments_before_failure`` characters, then fails."""

  def __init__(self, messages=None, fragments_before_failure: int = 0, **kwargs):
    super().__init__(messages, **kwargs)
    self.fragments_before_failure = fragments_before_failure

  async def stream_generate(self, model, messages, tools=None):
    self.stream_call_count += 1
    self.record(model, messages, tools)
    turn = self.to_turn(self.next_message())
    for character in turn.content[: self.fragments_before_failure]:
      yield ModelDelta(content=character)
    raise ConnectionError("connection reset by peer")


class SlowMockProvider(MockProvider):
  """Waits between streamed fragments, to observe consumers that stop early."""

  def __init__(self, messages=None, delay: float = 0.01, **kwargs):
    super().__init__(messages, **kwargs)
    self.delay = delay

  async def stream_generate(self, model, messages, tools=None):
    async with aclosing(super().stream_generate(model, messages, tools)) as deltas:
      async for delta in deltas:
        await asyncio.sleep(self.delay)
        yield delta


def tool_call_message(name: str, arguments: str = "{}", content: str = "") -> Dict[str, Any]:
  return {"content": content, "tool_calls": [{"name": name, "arguments": arguments}]}


def provider_failure(provider_id: str = "mock") -> ProviderError:
  return ProviderError("quota exceeded", provider_id, "mock-model")


# Tools used across the tests


def calculate(expr: str) -> str:
  """
  Evaluate a sum of integers.

  Args:
    expr (str): An expression like "2+2"
  """
  return str(sum(int(part) for part in expr.split("+")))


def add_numbers(a: int, b: int) -> int:
  """Add two numbers."""
  return a + b


def failing_tool(reason: str = "boom") -> str:
  """A tool that always fails."""
  raise RuntimeError(reason)


async def remember_city(city: str, context=None) -> str:
  """Store the city in the context variables."""
  context.set("city", city)
  return f"Remembered {city}"
