from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from ..messages.message import ChatMessage


@dataclass
class AgentContext:
  """
  Per-run state: caller-supplied variables and the conversation history.

  A context belongs to exactly one run at a time. The caller may reuse it
  for a following run once the previous one has finished.
  """

  session_id: Optional[str] = None
  variables: Dict[str, str] = field(default_factory=dict)
  history: List[ChatMessage] = field(default_factory=list)

  def get(self, key: str, default: str = "") -> str:
    return self.variables.get(key, default)

  def set(self, key: str, value) -> None:
    self.variables[key] = str(value)

  def merge(self, updates: Optional[Mapping[str, str]]) -> None:
    for key, value in (updates or {}).items():
      self.set(key, value)

  def to_map(self) -> Mapping[str, str]:
    return MappingProxyType(self.variables)

  def to_mutable_map(self) -> Dict[str, str]:
    return dict(self.variables)
