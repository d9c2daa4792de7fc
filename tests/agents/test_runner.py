import asyncio
import pytest

from agentloop import (
  Agent,
  AgentContext,
  AgentRunner,
  ChatMessage,
  ConversationRole,
  ProviderError,
  ProviderRouter,
  State,
  ToolRegistry,
  ToolResult,
  ValidationError,
)
from mock_utils import (
  ErrorMockProvider,
  MockProvider,
  add_numbers,
  calculate,
  failing_tool,
  remember_city,
  tool_call_message,
)


def make_runner(provider, *tools):
  registry = ToolRegistry()
  for tool in tools:
    registry.register_function(tool)
  return AgentRunner(ProviderRouter({"openai": provider}), registry)


class TestRunScenarios:
  @pytest.mark.asyncio
  async def test_answer_without_tool_calls_takes_one_model_call(self):
    provider = MockProvider([{"content": "4"}])
    runner = make_runner(provider)

    response = await runner.run(Agent(name="Math"), [ChatMessage.user("2+2?")])

    assert response.messages[-1].content == "4"
    assert response.messages[-1].role == ConversationRole.ASSISTANT
    assert response.messages[-1].sender_name == "Math"
    assert provider.call_count == 1
    assert response.state == State.DONE
    assert response.turns == 0
    assert not response.truncated

  @pytest.mark.asyncio
  async def test_tool_call_then_answer(self):
    provider = MockProvider([tool_call_message("calculate", '{"expr": "2+2"}'), {"content": "4"}])
    runner = make_runner(provider, calculate)

    response = await runner.run(Agent(), [ChatMessage.user("2+2?")])

    assert provider.call_count == 2
    assert response.last_message() == "4"
    assert response.state == State.DONE
    assert response.turns == 1

    request, result = response.messages[-3], response.messages[-2]
    assert request.has_tool_calls
    assert result.role == ConversationRole.TOOL
    assert result.tool_call_id == request.tool_calls[0].id
    assert result.content == "4"
    assert not result.is_error

    # the second model call sees the tool result
    assert provider.received_messages[1][-1] == result

  @pytest.mark.asyncio
  async def test_turn_budget_truncates_without_another_model_call(self):
    provider = MockProvider([tool_call_message("calculate", '{"expr": "1+1"}') for _ in range(5)])
    runner = make_runner(provider, calculate)

    response = await runner.run(Agent(), [ChatMessage.user("loop")], max_turns=1)

    assert provider.call_count == 1
    assert response.state == State.TRUNCATED
    assert response.truncated
    assert response.turns == 1
    assert response.messages[-1].role == ConversationRole.TOOL

  @pytest.mark.asyncio
  async def test_empty_messages_are_rejected_before_any_model_call(self):
    provider = MockProvider([{"content": "never"}])
    runner = make_runner(provider)

    with pytest.raises(ValidationError, match="At least one message is required"):
      await runner.run(Agent(), [])

    assert provider.call_count == 0


class TestRunProperties:
  @pytest.mark.asyncio
  @pytest.mark.parametrize("max_turns", [1, 2, 3, 5])
  async def test_model_calls_never_exceed_the_turn_budget(self, max_turns):
    provider = MockProvider([tool_call_message("add_numbers", '{"a": 1, "b": 2}') for _ in range(10)])
    runner = make_runner(provider, add_numbers)

    response = await runner.run(Agent(), [ChatMessage.user("add forever")], max_turns=max_turns)

    assert provider.call_count <= max_turns
    assert response.turns == max_turns
    assert response.truncated

  @pytest.mark.asyncio
  async def test_tool_failure_is_reported_to_the_model(self):
    provider = MockProvider([tool_call_message("failing_tool", '{"reason": "disk full"}'), {"content": "Sorry"}])
    runner = make_runner(provider, failing_tool)

    response = await runner.run(Agent(), [ChatMessage.user("try")])

    tool_message = response.messages[-2]
    assert tool_message.is_error
    assert tool_message.content == "RuntimeError: disk full"
    assert provider.call_count == 2
    assert response.last_message() == "Sorry"

  @pytest.mark.asyncio
  async def test_every_tool_result_answers_a_request_of_the_run(self):
    provider = MockProvider(
      [
        {
          "tool_calls": [
            {"name": "add_numbers", "arguments": '{"a": 1, "b": 2}'},
            {"name": "unknown_tool", "arguments": "{}"},
            {"name": "add_numbers", "arguments": "not json"},
          ]
        },
        {"content": "done"},
      ]
    )
    runner = make_runner(provider, add_numbers)

    response = await runner.run(Agent(), [ChatMessage.user("go")])

    requested = [c.id for m in response.messages for c in m.tool_calls]
    answered = [m.tool_call_id for m in response.messages if m.role == ConversationRole.TOOL]
    assert answered == requested
    results = [m for m in response.messages if m.role == ConversationRole.TOOL]
    assert [r.is_error for r in results] == [False, True, True]
    assert results[0].content == "3"
    assert "Unknown tool" in results[1].content
    assert "Invalid arguments" in results[2].content

  @pytest.mark.asyncio
  async def test_tool_outside_the_agent_subset_is_not_invoked(self):
    invoked = []

    def secret(value: str) -> str:
      """Must not run."""
      invoked.append(value)
      return value

    provider = MockProvider([tool_call_message("secret", '{"value": "x"}'), {"content": "ok"}])
    runner = make_runner(provider, secret, calculate)

    response = await runner.run(Agent(tools=["calculate"]), [ChatMessage.user("go")])

    assert invoked == []
    assert response.messages[-2].is_error
    assert "not available" in response.messages[-2].content
    assert [t["function"]["name"] for t in provider.received_tools[0]] == ["calculate"]

  @pytest.mark.asyncio
  async def test_provider_failure_is_terminal(self):
    provider = ErrorMockProvider(fail_after=0)
    runner = make_runner(provider)

    with pytest.raises(ProviderError) as info:
      await runner.run(Agent(), [ChatMessage.user("hi")])

    assert info.value.provider_id == "openai"
    assert isinstance(info.value.__cause__, RuntimeError)
    assert provider.call_count == 1

  @pytest.mark.asyncio
  async def test_provider_failure_after_a_tool_round(self):
    provider = ErrorMockProvider([tool_call_message("add_numbers", '{"a": 1, "b": 1}')], fail_after=1)
    runner = make_runner(provider, add_numbers)

    with pytest.raises(ProviderError):
      await runner.run(Agent(), [ChatMessage.user("hi")])
    assert provider.call_count == 2


class TestRunContext:
  @pytest.mark.asyncio
  async def test_history_is_seeded_with_the_system_message(self):
    provider = MockProvider([{"content": "hi"}])
    runner = make_runner(provider, calculate)

    agent = Agent(name="Helper", instructions="Be brief.")
    response = await runner.run(agent, [ChatMessage.user("hello")])

    system = response.messages[0]
    assert system.role == ConversationRole.SYSTEM
    assert system.content.startswith("Be brief.")
    assert "Your name is Helper." in system.content
    assert "calculate" in system.content
    assert response.messages[1] == ChatMessage.user("hello")
    assert provider.received_messages[0][0] == system

  @pytest.mark.asyncio
  async def test_dynamic_instructions_see_the_context_variables(self):
    provider = MockProvider([{"content": "hi"}])
    runner = make_runner(provider)

    agent = Agent(instructions_fn=lambda variables: f"Greet {variables.get('user', 'nobody')}.")
    context = AgentContext(variables={"user": "Ada"})
    response = await runner.run(agent, [ChatMessage.user("hello")], context)

    assert response.messages[0].content.startswith("Greet Ada.")

  @pytest.mark.asyncio
  async def test_context_is_updated_in_place(self):
    provider = MockProvider([tool_call_message("remember_city", '{"city": "Lisbon"}'), {"content": "noted"}])
    runner = make_runner(provider, remember_city)

    context = AgentContext(session_id="s-1", variables={"user": "Ada"})
    response = await runner.run(Agent(), [ChatMessage.user("I live in Lisbon")], context)

    assert context.get("city") == "Lisbon"
    assert response.context_variables == {"user": "Ada", "city": "Lisbon"}
    assert context.history == response.messages

  @pytest.mark.asyncio
  async def test_tool_results_merge_variables_and_hand_off(self):
    specialist = Agent(name="Specialist", model="claude-sonnet-4-20250514", instructions="You are the specialist.")

    def transfer(topic: str) -> ToolResult:
      """Hand the conversation to the specialist."""
      return ToolResult.handoff_to(specialist, context_variables={"topic": topic})

    openai = MockProvider([tool_call_message("transfer", '{"topic": "billing"}')], provider_id="openai")
    anthropic = MockProvider([{"content": "Specialist here"}], provider_id="anthropic")
    registry = ToolRegistry()
    registry.register_function(transfer)
    runner = AgentRunner(ProviderRouter({"openai": openai, "anthropic": anthropic}), registry)

    response = await runner.run(Agent(name="Triage", model="gpt-4o"), [ChatMessage.user("my invoice")])

    assert response.agent == specialist
    assert response.context_variables["topic"] == "billing"
    assert response.last_message() == "Specialist here"
    assert response.messages[-1].sender_name == "Specialist"
    assert anthropic.received_models == ["claude-sonnet-4-20250514"]
    assert anthropic.received_messages[0][0].content.startswith("You are the specialist.")

  @pytest.mark.asyncio
  async def test_concurrent_runs_do_not_share_context(self):
    class CityProvider(MockProvider):
      async def generate(self, model, messages, tools=None):
        self.call_count += 1
        await asyncio.sleep(0)
        last = messages[-1]
        if last.role == ConversationRole.USER:
          return self.to_turn(tool_call_message("remember_city", f'{{"city": "{last.content}"}}'))
        return self.to_turn({"content": "done"})

    runner = make_runner(CityProvider(), remember_city)
    paris, rome = AgentContext(), AgentContext()

    first, second = await asyncio.gather(
      runner.run(Agent(), [ChatMessage.user("Paris")], paris),
      runner.run(Agent(), [ChatMessage.user("Rome")], rome),
    )

    assert paris.variables == {"city": "Paris"}
    assert rome.variables == {"city": "Rome"}
    assert first.messages[1].content == "Paris"
    assert second.messages[1].content == "Rome"
    assert paris.history is not rome.history

  @pytest.mark.asyncio
  async def test_model_is_resolved_through_the_router(self):
    provider = MockProvider([{"content": "ok"}])
    runner = make_runner(provider)

    await runner.run(Agent(model="openai:gpt-4.1-mini"), [ChatMessage.user("hi")])
    provider.add_messages([{"content": "ok"}])
    await runner.run(Agent(), [ChatMessage.user("hi")])

    assert provider.received_models == ["gpt-4.1-mini", "gpt-4o"]

  @pytest.mark.asyncio
  async def test_no_tools_are_sent_when_none_are_registered(self):
    provider = MockProvider([{"content": "ok"}])
    runner = make_runner(provider)

    await runner.run(Agent(), [ChatMessage.user("hi")])

    assert provider.received_tools == [None]
