import os
import threading

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Mapping, Optional

from .agent import Agent
from ..logs.logs import get_logger

DEFAULT_AGENT_NAME = "Assistant"
DEFAULT_AGENT_MODEL = "gpt-4.1"
DEFAULT_AGENT_INSTRUCTIONS = "You are a helpful assistant."
DEFAULT_MAX_TURNS = 10


@dataclass(frozen=True)
class AgentSettings:
  name: str = DEFAULT_AGENT_NAME
  model: str = DEFAULT_AGENT_MODEL
  instructions: str = DEFAULT_AGENT_INSTRUCTIONS
  max_turns: int = DEFAULT_MAX_TURNS
  tools: FrozenSet[str] = field(default_factory=frozenset)

  @classmethod
  def from_environment(cls, env: Optional[Mapping[str, str]] = None) -> "AgentSettings":
    env = os.environ if env is None else env
    max_turns = env.get("AGENTLOOP_MAX_TURNS", "").strip()
    return cls(
      name=env.get("AGENTLOOP_AGENT_NAME") or DEFAULT_AGENT_NAME,
      model=env.get("AGENTLOOP_AGENT_MODEL") or DEFAULT_AGENT_MODEL,
      instructions=env.get("AGENTLOOP_AGENT_INSTRUCTIONS") or DEFAULT_AGENT_INSTRUCTIONS,
      max_turns=int(max_turns) if max_turns.isdigit() and int(max_turns) > 0 else DEFAULT_MAX_TURNS,
    )

  def to_agent(self) -> Agent:
    return Agent(name=self.name, model=self.model, instructions=self.instructions, tools=self.tools)


class AgentConfigurer:
  """
  Holds the live agent settings as one immutable snapshot.

  Writers build a new snapshot and swap the reference under a lock. Readers
  take the reference without locking and always see a consistent value, so a
  run started before an update keeps the settings it started with.
  """

  def __init__(self, settings: Optional[AgentSettings] = None):
    self.logger = get_logger("config")
    self._settings = settings or AgentSettings()
    self._lock = threading.Lock()
    self.logger.info(f"Agent configured: name={self._settings.name}, model={self._settings.model}")

  @classmethod
  def from_environment(cls) -> "AgentConfigurer":
    return cls(AgentSettings.from_environment())

  def snapshot(self) -> AgentSettings:
    return self._settings

  def agent(self) -> Agent:
    return self._settings.to_agent()

  @property
  def max_turns(self) -> int:
    return self._settings.max_turns

  def update(
    self,
    name: Optional[str] = None,
    model: Optional[str] = None,
    instructions: Optional[str] = None,
    max_turns: Optional[int] = None,
  ) -> AgentSettings:
    """Publish new settings. Blank strings and non-positive turn budgets keep the current value."""
    with self._lock:
      current = self._settings
      self._settings = replace(
        current,
        name=name if name and name.strip() else current.name,
        model=model if model and model.strip() else current.model,
        instructions=instructions if instructions and instructions.strip() else current.instructions,
        max_turns=max_turns if max_turns and max_turns > 0 else current.max_turns,
      )
      self.logger.info(f"Agent settings updated: name={self._settings.name}, model={self._settings.model}")
      return self._settings

  def replace(self, settings: AgentSettings) -> AgentSettings:
    with self._lock:
      self._settings = settings
      return settings
