from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from .agent import Agent
from ..messages.message import ChatMessage, ConversationRole


class State(Enum):
  """
  States of one run.

    AWAITING_MODEL     -> DONE              [answer without tool calls]
    AWAITING_MODEL     -> DISPATCHING_TOOLS [answer with tool calls]
    DISPATCHING_TOOLS  -> AWAITING_MODEL    [turn < max_turns]
    DISPATCHING_TOOLS  -> TRUNCATED         [turn >= max_turns]
  """

  AWAITING_MODEL = "awaiting_model"
  DISPATCHING_TOOLS = "dispatching_tools"
  DONE = "done"
  TRUNCATED = "truncated"

  @property
  def terminal(self) -> bool:
    return self in (State.DONE, State.TRUNCATED)


@dataclass
class AgentResponse:
  messages: List[ChatMessage]
  agent: Agent
  context_variables: Dict[str, str] = field(default_factory=dict)
  state: State = State.DONE
  turns: int = 0
  provider_calls: int = 0

  @property
  def truncated(self) -> bool:
    return self.state == State.TRUNCATED

  def last_message(self) -> str:
    for message in reversed(self.messages):
      if message.role == ConversationRole.ASSISTANT:
        return message.content
    return ""
