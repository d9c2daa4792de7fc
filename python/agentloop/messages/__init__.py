from .message import (
  CALLER_ROLES,
  ChatMessage,
  ConversationRole,
  FunctionToolCall,
  ToolCall,
  new_tool_call_id,
)
from .wire import (
  ChatRequest,
  ChatResponse,
  WireMessage,
  messages_from_wire,
  messages_to_wire,
  parse_chat_request,
  parse_chat_request_json,
  response_to_wire,
  to_chat_messages,
)

__all__ = [
  "CALLER_ROLES",
  "ChatMessage",
  "ConversationRole",
  "FunctionToolCall",
  "ToolCall",
  "new_tool_call_id",
  "ChatRequest",
  "ChatResponse",
  "WireMessage",
  "messages_from_wire",
  "messages_to_wire",
  "parse_chat_request",
  "parse_chat_request_json",
  "response_to_wire",
  "to_chat_messages",
]
