"""
Exception classes for the orchestration engine.

Every error carries a ``context`` dict with the details that matter for
debugging (provider, model, tool name, counts) and builds its message from it.

Taxonomy:
  - ConfigurationError: fatal, raised while wiring the engine, never during a run
  - ValidationError: a request rejected before the turn loop starts
  - ProviderError: a model call failed, terminal for the current run
  - ToolExecutionError: a tool failed; converted into an error ToolResult by the
    registry and never seen by the engine
"""

from typing import Optional, Dict, Any


class AgentLoopError(Exception):
  """
  Base class for agentloop errors.

  Attributes:
    reason: Short human-readable description of what went wrong
    context: Additional context about the failure
    message: Full message, reason plus context
  """

  def __init__(self, reason: str, context: Optional[Dict[str, Any]] = None):
    self.reason = reason
    self.context = context or {}
    self.message = self._build_message()
    super().__init__(self.message)

  def _build_message(self) -> str:
    parts = [self.reason]

    context_parts = [f"{k}: {v}" for k, v in self.context.items() if v is not None]
    if context_parts:
      parts.append(f"({', '.join(context_parts)})")

    return " ".join(parts)


class ConfigurationError(AgentLoopError):
  """
  Raised when the engine cannot be wired: no provider is configured, or a tool
  name is registered twice.
  """


class ValidationError(AgentLoopError):
  """
  Raised when a request is rejected before any provider call: empty message
  list, too many messages, unsupported role or an invalid turn budget.
  """


class ProviderError(AgentLoopError):
  """
  Raised when a model provider call fails (network, quota, malformed response).

  There is no retry inside the engine. The original exception, when there is
  one, is chained as ``__cause__``.

  Example:
    try:
      response = await runner.run(agent, messages)
    except ProviderError as e:
      print(f"{e.provider_id} failed: {e}")
  """

  def __init__(
    self,
    reason: str,
    provider_id: Optional[str] = None,
    model: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
  ):
    ctx = dict(context or {})
    ctx["provider"] = provider_id
    ctx["model"] = model
    self.provider_id = provider_id
    self.model = model
    super().__init__(reason, ctx)


class ToolExecutionError(AgentLoopError):
  """
  Raised by tools, or the tool plumbing, when an invocation fails.

  The registry converts it into an error ToolResult.
  """

  def __init__(self, reason: str, tool_name: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
    ctx = dict(context or {})
    ctx["tool"] = tool_name
    self.tool_name = tool_name
    super().__init__(reason, ctx)


class ToolArgumentsError(ToolExecutionError):
  """Raised when JSON tool arguments cannot be parsed or do not match the tool's parameters."""
