from .agent import Agent
from .context import AgentContext
from .response import AgentResponse, State
from .configurer import AgentConfigurer, AgentSettings
from .instructions import MemoryEntry, SystemPromptBuilder
from .validation import validate_request
from .stream import AgentStream
from .runner import AgentRunner, RunStateMachine

__all__ = [
  "Agent",
  "AgentConfigurer",
  "AgentContext",
  "AgentResponse",
  "AgentRunner",
  "AgentSettings",
  "AgentStream",
  "MemoryEntry",
  "RunStateMachine",
  "State",
  "SystemPromptBuilder",
  "validate_request",
]
