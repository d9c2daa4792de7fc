from .protocol import InvokableTool
from .result import ToolErrorKind, ToolResult
from .tool import Tool, ToolDefinition
from .registry import ToolRegistry

__all__ = ["InvokableTool", "Tool", "ToolDefinition", "ToolErrorKind", "ToolRegistry", "ToolResult"]
