from typing import AsyncIterator, List, Optional, Sequence

import litellm

from ..provider import ModelDelta, ModelTurn, Provider
from ...errors import ProviderError
from ...logs import get_logger, InfoContext
from ...messages.message import ChatMessage, ConversationRole, FunctionToolCall, ToolCall, new_tool_call_id


# Let litellm adapt requests to vendor quirks (e.g. Anthropic's rules on empty content).
litellm.modify_params = True


class LiteLLMClient(Provider, InfoContext):
  """
  Provider backed by litellm.

  One client per configured vendor. ``litellm_provider`` is the litellm routing
  prefix ("openai", "anthropic", "ollama_chat", ...) put in front of every
  model name.
  """

  def __init__(
    self,
    provider_id: str,
    litellm_provider: Optional[str] = None,
    api_base: Optional[str] = None,
    api_key: Optional[str] = None,
    request_timeout: float = 120.0,
    max_tokens: Optional[int] = 4096,
    streaming: bool = True,
    **kwargs,
  ):
    self.logger = get_logger("model")
    self.provider_id = provider_id
    self.litellm_provider = litellm_provider or provider_id
    self.streaming = streaming
    self.kwargs = kwargs
    self.kwargs["drop_params"] = True
    self.kwargs["timeout"] = request_timeout
    if max_tokens:
      self.kwargs["max_tokens"] = max_tokens
    if api_base:
      self.kwargs["api_base"] = api_base
    if api_key:
      self.kwargs["api_key"] = api_key

  def supports_streaming(self) -> bool:
    return self.streaming

  def litellm_model(self, model: str) -> str:
    if model.startswith(f"{self.litellm_provider}/"):
      return model
    return f"{self.litellm_provider}/{model}"

  def prepare_call(self, model: str, messages: Sequence[ChatMessage], tools: Optional[List[dict]], **kwargs) -> dict:
    # parameters provided in kwargs override the client defaults
    request = {**self.kwargs, **kwargs}
    request["model"] = self.litellm_model(model)
    request["messages"] = to_litellm_messages(messages)
    # an empty tools list is sometimes read as "please hallucinate tools"
    if tools:
      request["tools"] = tools
    return request

  async def generate(self, model: str, messages: Sequence[ChatMessage], tools: Optional[List[dict]] = None) -> ModelTurn:
    request = self.prepare_call(model, messages, tools)
    with self.info(
      f"Processing {len(messages)} messages with '{self.provider_id}:{model}'",
      f"Finished processing messages with '{self.provider_id}:{model}'",
    ):
      try:
        response = await litellm.acompletion(stream=False, **request)
      except Exception as e:
        raise ProviderError(f"Model call failed: {e}", self.provider_id, model) from e

      self.logger.debug(f"Got a response from '{self.provider_id}:{model}': {response}")
      try:
        message = response.choices[0].message
      except (AttributeError, IndexError, TypeError) as e:
        raise ProviderError("Malformed model response", self.provider_id, model) from e

      tool_calls = tuple(
        ToolCall(
          tc.id or new_tool_call_id(),
          FunctionToolCall(tc.function.name, tc.function.arguments or ""),
        )
        for tc in (getattr(message, "tool_calls", None) or [])
      )
      return ModelTurn(message.content or "", tool_calls)

  async def stream_generate(
    self, model: str, messages: Sequence[ChatMessage], tools: Optional[List[dict]] = None
  ) -> AsyncIterator[ModelDelta]:
    request = self.prepare_call(model, messages, tools)
    self.logger.info(f"Streaming {len(messages)} messages with '{self.provider_id}:{model}'")
    try:
      chunks = await litellm.acompletion(stream=True, **request)
    except Exception as e:
      raise ProviderError(f"Model stream failed to start: {e}", self.provider_id, model) from e

    accumulator = ToolCallAccumulator()
    try:
      async for chunk in chunks:
        if not chunk.choices:
          continue
        delta = chunk.choices[0].delta
        if getattr(delta, "tool_calls", None):
          accumulator.add(delta.tool_calls)
        if delta.content:
          yield ModelDelta(content=delta.content)
    except ProviderError:
      raise
    except Exception as e:
      raise ProviderError(f"Model stream failed: {e}", self.provider_id, model) from e
    finally:
      close = getattr(chunks, "aclose", None)
      if close is not None:
        await close()

    self.logger.debug(f"Stream from '{self.provider_id}:{model}' finished")
    yield ModelDelta(tool_calls=accumulator.tool_calls(), finished=True)


class ToolCallAccumulator:
  """Rebuilds complete tool calls from streamed fragments, keyed by their index."""

  def __init__(self):
    self.calls = {}

  def add(self, fragments):
    for fragment in fragments:
      index = getattr(fragment, "index", None) or 0
      function = getattr(fragment, "function", None)
      name = getattr(function, "name", None) if function else None
      arguments = getattr(function, "arguments", None) if function else None

      call = self.calls.get(index)
      if call is None:
        call = self.calls[index] = {"id": None, "name": "", "arguments": ""}
      if getattr(fragment, "id", None):
        call["id"] = fragment.id
      if name:
        call["name"] = name
      if arguments:
        call["arguments"] += arguments

  def tool_calls(self):
    return tuple(
      ToolCall(call["id"] or new_tool_call_id(), FunctionToolCall(call["name"], call["arguments"]))
      for _, call in sorted(self.calls.items())
    )


def to_litellm_messages(messages: Sequence[ChatMessage]) -> List[dict]:
  converted = []
  for message in messages:
    entry = {"role": message.role.value, "content": message.content}

    match message.role:
      case ConversationRole.SYSTEM | ConversationRole.USER if not message.content:
        continue
      case ConversationRole.ASSISTANT if message.tool_calls:
        entry["content"] = message.content or None
        entry["tool_calls"] = [
          {"id": tc.id, "type": tc.type, "function": {"name": tc.name, "arguments": tc.arguments}}
          for tc in message.tool_calls
        ]
      case ConversationRole.TOOL if message.tool_call_id:
        entry["tool_call_id"] = message.tool_call_id

    converted.append(entry)
  return converted
