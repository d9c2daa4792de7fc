from contextlib import aclosing, nullcontext
from typing import List, Optional, Sequence

from .agent import Agent
from .context import AgentContext
from .instructions import SystemPromptBuilder, basic_instructions
from .response import AgentResponse, State
from .stream import AgentStream
from .validation import DEFAULT_MAX_MESSAGES, validate_request
from ..errors import ProviderError
from ..logs.logs import InfoContext, get_logger
from ..messages.message import ChatMessage, ConversationRole, ToolCall, new_tool_call_id
from ..models.provider import ModelTurn
from ..models.router import ProviderRouter, ResolvedModel
from ..tools.registry import ToolRegistry
from ..tools.result import ToolErrorKind, ToolResult

DEFAULT_MAX_TURNS = 10

logger = get_logger("engine")


class RunStateMachine:
  """
  Drives one run of an agent through its states.

  A run alternates between asking the model for the next assistant message
  (AWAITING_MODEL) and executing the tool calls that message requested
  (DISPATCHING_TOOLS). It ends in DONE when the model answers without tool
  calls, or in TRUNCATED once ``max_turns`` rounds of tool dispatch happened.

  One state machine per run. It owns the run's history (also exposed as
  ``context.history``) and is never shared between runs.

  Attributes:
    agent: The active agent, replaced when a tool hands off
    context: The run's AgentContext
    history: The transcript, starting with the system message
    stream: Whether text fragments are yielded while the model produces them
    turn: Completed tool dispatch rounds
    provider_calls: Model calls issued so far, fallbacks included
  """

  def __init__(self, runner: "AgentRunner", agent: Agent, context: AgentContext, max_turns: int, stream: bool):
    self.runner = runner
    self.agent = agent
    self.context = context
    self.history = context.history
    self.max_turns = max_turns
    self.stream = stream

    self.state = State.AWAITING_MODEL
    self.turn = 0
    self.provider_calls = 0
    self.tool_calls: Sequence[ToolCall] = ()

  async def run(self):
    """Yield text fragments (streaming runs only) until the run reaches a terminal state."""
    while not self.state.terminal:
      async with aclosing(self.transition()) as fragments:
        async for fragment in fragments:
          yield fragment

    if self.state == State.TRUNCATED:
      logger.warning(f"Agent '{self.agent.name}' reached the turn budget ({self.max_turns})")

  async def transition(self):
    logger.debug(f"[{self.state.name}] turn={self.turn}/{self.max_turns} agent='{self.agent.name}'")

    match self.state:
      case State.AWAITING_MODEL:
        async with aclosing(self._handle_awaiting_model()) as fragments:
          async for fragment in fragments:
            yield fragment
      case State.DISPATCHING_TOOLS:
        await self._handle_dispatching_tools()

  async def _handle_awaiting_model(self):
    resolved = self.runner.router.resolve(self.agent.resolved_model)
    logger.debug(f"Using provider '{resolved.provider_id}' with model '{resolved.model_name}'")

    self.refresh_system_message()
    tools = await self.runner.tool_schemas(self.agent)

    if self.stream:
      turn = None
      async with aclosing(self._stream_turn(resolved, tools)) as fragments:
        async for fragment in fragments:
          if isinstance(fragment, ModelTurn):
            turn = fragment
          else:
            yield fragment
    else:
      turn = await self._generate(resolved, tools)

    tool_calls = tuple(c if c.id else ToolCall(new_tool_call_id(), c.function, c.type) for c in turn.tool_calls)
    self.history.append(ChatMessage.assistant(turn.content, self.agent.name, tool_calls))

    if not tool_calls:
      self.state = State.DONE
      return

    self.tool_calls = tool_calls
    self.state = State.DISPATCHING_TOOLS

  async def _stream_turn(self, resolved: ResolvedModel, tools: Optional[List[dict]]):
    """
    Yield the text fragments of one model turn, then the complete ModelTurn.

    A provider that cannot stream, or whose stream fails before producing
    any text, is asked again through ``generate`` and its answer is yielded
    as a single fragment.
    """
    if not resolved.provider.supports_streaming():
      turn = await self._generate(resolved, tools)
      if turn.content:
        yield turn.content
      yield turn
      return

    content = []
    tool_calls = ()
    self.provider_calls += 1
    try:
      deltas = resolved.provider.stream_generate(resolved.model_name, list(self.history), tools)
      closing = aclosing(deltas) if hasattr(deltas, "aclose") else nullcontext(deltas)
      async with closing as deltas:
        async for delta in deltas:
          if delta.tool_calls:
            tool_calls = tool_calls + tuple(delta.tool_calls)
          if delta.content:
            content.append(delta.content)
            yield delta.content
    except Exception as e:
      if content:
        if isinstance(e, ProviderError):
          raise
        raise ProviderError(f"Model stream failed: {e}", resolved.provider_id, resolved.model_name) from e

      logger.debug(f"Streaming from '{resolved.provider_id}' failed, falling back to a blocking call: {e}")
      turn = await self._generate(resolved, tools)
      if turn.content:
        yield turn.content
      yield turn
      return

    yield ModelTurn("".join(content), tool_calls)

  async def _generate(self, resolved: ResolvedModel, tools: Optional[List[dict]]) -> ModelTurn:
    self.provider_calls += 1
    try:
      return await resolved.provider.generate(resolved.model_name, list(self.history), tools)
    except ProviderError:
      raise
    except Exception as e:
      raise ProviderError(f"Model call failed: {e}", resolved.provider_id, resolved.model_name) from e

  async def _handle_dispatching_tools(self):
    # Tool calls run one after the other, in the order the model requested them.
    requester = self.agent
    for call in self.tool_calls:
      if requester.allows(call.name):
        result = await self.runner.registry.execute(call.name, call.arguments, self.context)
      else:
        logger.warning(f"Agent '{requester.name}' is not allowed to call tool '{call.name}'")
        result = ToolResult.err(
          ToolErrorKind.NOT_ALLOWED, f"Tool '{call.name}' is not available to agent '{requester.name}'"
        )

      self.history.append(ChatMessage.tool_result(call.id, result.text, call.name, result.is_error))
      self.context.merge(result.context_variables)

      if result.handoff is not None:
        logger.info(f"Handoff from '{self.agent.name}' to '{result.handoff.name}'")
        self.agent = result.handoff

    self.tool_calls = ()
    self.turn += 1
    self.state = State.TRUNCATED if self.turn >= self.max_turns else State.AWAITING_MODEL

  def refresh_system_message(self):
    """Rebuild the leading system message for the active agent and the current variables."""
    prompt = self.runner.system_prompt(self.agent, self.context, self.latest_user_message())
    if self.history and self.history[0].role == ConversationRole.SYSTEM:
      if self.history[0].content != prompt:
        self.history[0] = ChatMessage.system(prompt)
    else:
      self.history.insert(0, ChatMessage.system(prompt))

  def latest_user_message(self) -> str:
    for message in reversed(self.history):
      if message.role == ConversationRole.USER:
        return message.content
    return ""

  def response(self) -> AgentResponse:
    return AgentResponse(
      messages=list(self.history),
      agent=self.agent,
      context_variables=self.context.to_mutable_map(),
      state=self.state,
      turns=self.turn,
      provider_calls=self.provider_calls,
    )


class AgentRunner(InfoContext):
  """
  Runs agents against the configured providers and tools.

  The runner holds no per-run state and can serve concurrent runs.

  Example:
    runner = AgentRunner(ProviderRouter.from_environment(), registry)
    response = await runner.run(agent, [ChatMessage.user("What is 2+2?")])
    print(response.last_message())
  """

  def __init__(
    self,
    router: ProviderRouter,
    registry: Optional[ToolRegistry] = None,
    prompt_builder: Optional[SystemPromptBuilder] = None,
    max_messages: int = DEFAULT_MAX_MESSAGES,
  ):
    self.logger = logger
    self.router = router
    self.registry = registry if registry is not None else ToolRegistry()
    self.prompt_builder = prompt_builder
    self.max_messages = max_messages

  async def run(
    self,
    agent: Agent,
    messages: Sequence[ChatMessage],
    context: Optional[AgentContext] = None,
    max_turns: int = DEFAULT_MAX_TURNS,
  ) -> AgentResponse:
    machine = self.start(agent, messages, context, max_turns, stream=False)
    with self.info(f"Running agent '{agent.name}'", f"Agent '{agent.name}' finished"):
      async with aclosing(machine.run()) as fragments:
        async for _ in fragments:
          pass
    return machine.response()

  def run_streaming(
    self,
    agent: Agent,
    messages: Sequence[ChatMessage],
    context: Optional[AgentContext] = None,
    max_turns: int = DEFAULT_MAX_TURNS,
  ) -> AgentStream:
    """
    Start a streaming run. The request is validated right away, the model is
    only called once the returned stream is iterated.
    """
    machine = self.start(agent, messages, context, max_turns, stream=True)
    logger.info(f"Streaming agent '{agent.name}'")
    return AgentStream(machine)

  def start(
    self, agent: Agent, messages: Sequence[ChatMessage], context: Optional[AgentContext], max_turns: int, stream: bool
  ) -> RunStateMachine:
    validate_request(messages, max_turns, self.max_messages)

    context = context if context is not None else AgentContext()
    context.history = list(messages)
    machine = RunStateMachine(self, agent, context, max_turns, stream)
    machine.refresh_system_message()
    return machine

  def available_tool_names(self, agent: Agent) -> List[str]:
    return [name for name in self.registry.names() if agent.allows(name)]

  async def tool_schemas(self, agent: Agent) -> Optional[List[dict]]:
    schemas = await self.registry.list(agent.tools or None)
    return schemas or None

  def system_prompt(self, agent: Agent, context: AgentContext, user_message: str) -> str:
    instructions = agent.resolve_instructions(context.to_map())
    tool_names = self.available_tool_names(agent)
    if self.prompt_builder is not None:
      return self.prompt_builder.build(instructions, agent.name, user_message, tool_names)
    return basic_instructions(instructions, agent.name, tool_names)
