import os

from typing import Sequence

from ..errors import ValidationError
from ..messages.message import CALLER_ROLES, ChatMessage

DEFAULT_MAX_MESSAGES = 50


def max_messages_from_environment() -> int:
  value = os.environ.get("AGENTLOOP_MAX_MESSAGES", "")
  return int(value) if value.strip().isdigit() and int(value) > 0 else DEFAULT_MAX_MESSAGES


def validate_request(messages: Sequence[ChatMessage], max_turns: int, max_messages: int = DEFAULT_MAX_MESSAGES):
  """Reject a request before any provider call is made."""
  if not messages:
    raise ValidationError("At least one message is required")

  if len(messages) > max_messages:
    raise ValidationError("Too many messages", {"count": len(messages), "max": max_messages})

  for index, message in enumerate(messages):
    if message.role not in CALLER_ROLES:
      raise ValidationError(f"Unsupported role '{message.role.value}'", {"index": index})

  if not isinstance(max_turns, int) or isinstance(max_turns, bool) or max_turns < 1:
    raise ValidationError("max_turns must be a positive integer", {"max_turns": max_turns})
