"""
Wire shapes exchanged with transport adapters.

Request:  {"messages": [{"role", "content"}], "contextVariables": {...}, "maxTurns": int,
           "model": optional str, "sessionId": optional str}
Response: {"response": str, "agent": str, "contextVariables": {...}, "sessionId": str,
           "truncated": bool}
"""

import json
import cattrs

from cattrs.errors import BaseValidationError
from cattrs.gen import make_dict_structure_fn, make_dict_unstructure_fn, override
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .message import CALLER_ROLES, ChatMessage, ConversationRole
from ..errors import ValidationError


@dataclass
class WireMessage:
  role: str
  content: Optional[str] = ""


@dataclass
class ChatRequest:
  messages: List[WireMessage]
  context_variables: Optional[Dict[str, str]] = None
  max_turns: Optional[int] = None
  model: Optional[str] = None
  session_id: Optional[str] = None


@dataclass
class ChatResponse:
  response: str
  agent: str
  context_variables: Dict[str, str] = field(default_factory=dict)
  session_id: Optional[str] = None
  truncated: bool = False


class WireConverter:
  def __init__(self):
    self.converter = cattrs.Converter()
    self._register_hooks()

  def _register_hooks(self):
    renames = {
      "context_variables": override(rename="contextVariables"),
      "max_turns": override(rename="maxTurns"),
      "session_id": override(rename="sessionId"),
    }
    self.converter.register_structure_hook(
      ChatRequest, make_dict_structure_fn(ChatRequest, self.converter, **renames)
    )
    self.converter.register_unstructure_hook(
      ChatRequest, make_dict_unstructure_fn(ChatRequest, self.converter, **renames)
    )
    self.converter.register_unstructure_hook(
      ChatResponse,
      make_dict_unstructure_fn(
        ChatResponse,
        self.converter,
        context_variables=override(rename="contextVariables"),
        session_id=override(rename="sessionId"),
      ),
    )

  def request_from_dict(self, data) -> ChatRequest:
    if not isinstance(data, dict):
      raise ValidationError("Request body must be a JSON object", {"type": type(data).__name__})
    max_turns = data.get("maxTurns")
    if max_turns is not None and (not isinstance(max_turns, int) or isinstance(max_turns, bool)):
      raise ValidationError("maxTurns must be an integer", {"maxTurns": max_turns})
    try:
      return self.converter.structure(data, ChatRequest)
    except (BaseValidationError, KeyError, TypeError, ValueError) as e:
      raise ValidationError(f"Malformed request: {e}") from e

  def request_to_dict(self, request: ChatRequest) -> dict:
    return self.converter.unstructure(request)

  def response_to_dict(self, response: ChatResponse) -> dict:
    return self.converter.unstructure(response)

  def wire_messages(self, messages: Iterable[ChatMessage]) -> List[dict]:
    return [self.converter.unstructure(WireMessage(m.role.value, m.content)) for m in messages]


CONVERTER = WireConverter()


def parse_role(value: str, allowed: Optional[Iterable[ConversationRole]] = None) -> ConversationRole:
  try:
    role = ConversationRole(str(value).strip().lower())
  except ValueError:
    raise ValidationError(f"Unsupported role '{value}'") from None
  if allowed is not None and role not in allowed:
    raise ValidationError(f"Unsupported role '{value}'")
  return role


def parse_chat_request(data) -> ChatRequest:
  return CONVERTER.request_from_dict(data)


def parse_chat_request_json(body: str) -> ChatRequest:
  try:
    data = json.loads(body)
  except json.JSONDecodeError as e:
    raise ValidationError(f"Invalid JSON body: {e}") from e
  return parse_chat_request(data)


def to_chat_messages(request: ChatRequest) -> List[ChatMessage]:
  """Convert the request's messages, rejecting any role a caller may not use."""
  return [
    ChatMessage(parse_role(m.role, CALLER_ROLES), m.content or "")
    for m in request.messages
  ]


def messages_to_wire(messages: Sequence[ChatMessage]) -> List[dict]:
  return CONVERTER.wire_messages(messages)


def messages_from_wire(data: Sequence[dict], allowed_roles: Optional[Iterable[ConversationRole]] = None) -> List[ChatMessage]:
  messages = []
  for item in data:
    if not isinstance(item, dict) or "role" not in item:
      raise ValidationError("Every message needs a role", {"message": item})
    content = item.get("content")
    messages.append(ChatMessage(parse_role(item["role"], allowed_roles), "" if content is None else str(content)))
  return messages


def response_to_wire(response: ChatResponse) -> dict:
  return CONVERTER.response_to_dict(response)
