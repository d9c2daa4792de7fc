from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
  from ..agents.agent import Agent


class ToolErrorKind(Enum):
  UNKNOWN_TOOL = "unknown_tool"
  NOT_ALLOWED = "not_allowed"
  INVALID_ARGUMENTS = "invalid_arguments"
  EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True)
class ToolResult:
  """
  Outcome of one tool invocation.

  A failure is a value, never an exception: the text of an error result is
  shown to the model so it can recover. Successful results may carry updates
  for the run's context variables and an agent to hand the conversation to.
  """

  text: str
  is_error: bool = False
  kind: Optional[ToolErrorKind] = None
  context_variables: Mapping[str, str] = field(default_factory=dict, hash=False)
  handoff: Optional["Agent"] = field(default=None, hash=False)

  @staticmethod
  def ok(text: str, context_variables: Optional[Mapping[str, str]] = None, handoff: Optional["Agent"] = None):
    return ToolResult(str(text), context_variables=dict(context_variables or {}), handoff=handoff)

  @staticmethod
  def err(kind: ToolErrorKind, message: str) -> "ToolResult":
    return ToolResult(message, is_error=True, kind=kind)

  @staticmethod
  def handoff_to(agent: "Agent", text: Optional[str] = None, context_variables=None) -> "ToolResult":
    if text is None:
      text = f"Transferred to {agent.name}"
    return ToolResult.ok(text, context_variables, handoff=agent)
