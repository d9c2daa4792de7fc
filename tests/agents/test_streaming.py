import pytest

from agentloop import Agent, AgentRunner, ChatMessage, ConversationRole, ProviderError, ProviderRouter, ToolRegistry, ValidationError
from mock_utils import BrokenStreamProvider, MockProvider, SlowMockProvider, calculate, tool_call_message


def make_runner(provider, *tools):
  registry = ToolRegistry()
  for tool in tools:
    registry.register_function(tool)
  return AgentRunner(ProviderRouter({"openai": provider}), registry)


class TestStreaming:
  @pytest.mark.asyncio
  async def test_fragments_are_forwarded_as_they_arrive(self):
    provider = MockProvider([{"content": "Hello"}])
    runner = make_runner(provider)

    stream = runner.run_streaming(Agent(), [ChatMessage.user("hi")])
    fragments = [fragment async for fragment in stream]

    assert fragments == ["H", "e", "l", "l", "o"]
    assert provider.stream_call_count == 1
    assert provider.call_count == 0
    assert stream.response.last_message() == "Hello"
    assert not stream.response.truncated

  @pytest.mark.asyncio
  async def test_tool_calls_are_dispatched_between_streamed_turns(self):
    provider = MockProvider([tool_call_message("calculate", '{"expr": "2+2"}', content="Let me see. "), {"content": "4"}])
    runner = make_runner(provider, calculate)

    stream = runner.run_streaming(Agent(), [ChatMessage.user("2+2?")])
    text = await stream.collect()

    assert text == "Let me see. 4"
    assert provider.stream_call_count == 2
    tool_message = stream.response.messages[-2]
    assert tool_message.role == ConversationRole.TOOL
    assert tool_message.content == "4"
    assert tool_message.tool_call_id == stream.response.messages[-3].tool_calls[0].id

  @pytest.mark.asyncio
  async def test_turn_budget_is_reported_on_the_response(self):
    provider = MockProvider([tool_call_message("calculate", '{"expr": "1+1"}') for _ in range(3)])
    runner = make_runner(provider, calculate)

    stream = runner.run_streaming(Agent(), [ChatMessage.user("loop")], max_turns=2)
    await stream.collect()

    assert provider.stream_call_count == 2
    assert stream.response.truncated
    assert stream.response.turns == 2

  @pytest.mark.asyncio
  async def test_provider_without_streaming_is_replayed_as_one_fragment(self):
    provider = MockProvider([{"content": "all at once"}], streaming=False)
    runner = make_runner(provider)

    fragments = [f async for f in runner.run_streaming(Agent(), [ChatMessage.user("hi")])]

    assert fragments == ["all at once"]
    assert provider.call_count == 1
    assert provider.stream_call_count == 0

  @pytest.mark.asyncio
  async def test_stream_failing_before_any_fragment_falls_back_to_generate(self):
    provider = BrokenStreamProvider([{"content": "ignored"}, {"content": "fallback answer"}])
    runner = make_runner(provider)

    stream = runner.run_streaming(Agent(), [ChatMessage.user("hi")])
    fragments = [f async for f in stream]

    assert fragments == ["fallback answer"]
    assert provider.stream_call_count == 1
    assert provider.call_count == 1
    assert stream.response.provider_calls == 2

  @pytest.mark.asyncio
  async def test_stream_failing_mid_way_is_a_terminal_error(self):
    provider = BrokenStreamProvider([{"content": "partial answer"}], fragments_before_failure=3)
    runner = make_runner(provider)

    fragments = []
    with pytest.raises(ProviderError) as info:
      async for fragment in runner.run_streaming(Agent(), [ChatMessage.user("hi")]):
        fragments.append(fragment)

    assert fragments == ["p", "a", "r"]
    assert isinstance(info.value.__cause__, ConnectionError)
    assert provider.call_count == 0

  @pytest.mark.asyncio
  async def test_validation_happens_when_the_stream_is_created(self):
    provider = MockProvider([{"content": "never"}])
    runner = make_runner(provider)

    with pytest.raises(ValidationError):
      runner.run_streaming(Agent(), [])
    with pytest.raises(ValidationError):
      runner.run_streaming(Agent(), [ChatMessage.system("not from callers")])
    assert provider.stream_call_count == 0

  @pytest.mark.asyncio
  async def test_closing_early_stops_the_run(self):
    provider = SlowMockProvider([tool_call_message("calculate", '{"expr": "1+1"}', content="thinking"), {"content": "x"}])
    runner = make_runner(provider, calculate)

    stream = runner.run_streaming(Agent(), [ChatMessage.user("hi")])
    first = await stream.__anext__()
    await stream.aclose()

    assert first == "t"
    assert provider.streams_closed == 1
    assert provider.stream_call_count == 1
    assert [f async for f in stream] == []
    assert stream.response is None

  @pytest.mark.asyncio
  async def test_stream_as_context_manager(self):
    provider = MockProvider([{"content": "abc"}])
    runner = make_runner(provider)

    async with runner.run_streaming(Agent(), [ChatMessage.user("hi")]) as stream:
      async for fragment in stream:
        break

    assert fragment == "a"
    assert provider.streams_closed == 1
