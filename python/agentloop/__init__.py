from .errors import AgentLoopError, ConfigurationError, ProviderError, ToolArgumentsError, ToolExecutionError, ValidationError
from .messages import ChatMessage, ConversationRole, FunctionToolCall, ToolCall
from .tools import InvokableTool, Tool, ToolDefinition, ToolErrorKind, ToolRegistry, ToolResult
from .models import ModelDelta, ModelTurn, Provider, ProviderRouter, ResolvedModel
from .agents import (
  Agent,
  AgentConfigurer,
  AgentContext,
  AgentResponse,
  AgentRunner,
  AgentSettings,
  AgentStream,
  State,
  SystemPromptBuilder,
)
from .channels import Channel, ChannelRegistry, RestChannel

__all__ = [
  "Agent",
  "AgentConfigurer",
  "AgentContext",
  "AgentLoopError",
  "AgentResponse",
  "AgentRunner",
  "AgentSettings",
  "AgentStream",
  "Channel",
  "ChannelRegistry",
  "ChatMessage",
  "ConfigurationError",
  "ConversationRole",
  "FunctionToolCall",
  "InvokableTool",
  "ModelDelta",
  "ModelTurn",
  "Provider",
  "ProviderError",
  "ProviderRouter",
  "ResolvedModel",
  "RestChannel",
  "State",
  "SystemPromptBuilder",
  "Tool",
  "ToolArgumentsError",
  "ToolCall",
  "ToolDefinition",
  "ToolErrorKind",
  "ToolExecutionError",
  "ToolRegistry",
  "ToolResult",
  "ValidationError",
]
