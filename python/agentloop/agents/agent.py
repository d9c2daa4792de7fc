from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, Iterable, Mapping, Optional

DEFAULT_MODEL = "gpt-4o"
DEFAULT_INSTRUCTIONS = "You are a helpful agent."


@dataclass(frozen=True)
class Agent:
  """
  Immutable description of an agent: who it is, which model it talks to,
  its instructions and the tools it may call.

  An empty ``tools`` set allows every registered tool. ``instructions_fn``
  computes the instructions from the run's context variables and takes
  precedence over ``instructions``.

  Changing an agent means building a new value:

    stricter = agent.with_tools(["search"])
  """

  name: str = "Agent"
  model: str = ""
  instructions: str = ""
  tools: FrozenSet[str] = field(default_factory=frozenset)
  instructions_fn: Optional[Callable[[Mapping[str, str]], str]] = field(default=None, compare=False)
  tool_choice: str = "auto"

  def __post_init__(self):
    if not isinstance(self.tools, frozenset):
      object.__setattr__(self, "tools", frozenset(self.tools))

  @property
  def resolved_model(self) -> str:
    return self.model.strip() if self.model and self.model.strip() else DEFAULT_MODEL

  def resolve_instructions(self, variables: Optional[Mapping[str, str]] = None) -> str:
    if self.instructions_fn is not None:
      return self.instructions_fn(dict(variables or {}))
    return self.instructions or DEFAULT_INSTRUCTIONS

  def allows(self, tool_name: str) -> bool:
    return not self.tools or tool_name in self.tools

  def with_tools(self, tools: Iterable[str]) -> "Agent":
    return replace(self, tools=frozenset(tools))

  def with_model(self, model: str) -> "Agent":
    return replace(self, model=model)
