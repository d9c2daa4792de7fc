from typing import Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from .protocol import InvokableTool
from .result import ToolErrorKind, ToolResult
from .tool import Tool
from ..errors import ConfigurationError, ToolArgumentsError
from ..logs.logs import get_logger

if TYPE_CHECKING:
  from ..agents.context import AgentContext


class ToolRegistry:
  """
  Named collection of tools, filled while wiring the engine and read-only
  once runs start.

  ``execute`` is the single place where tool outcomes, including every kind
  of failure, become a ToolResult.
  """

  def __init__(self, tools: Optional[Iterable[InvokableTool]] = None):
    self.logger = get_logger("tool")
    self._tools: Dict[str, InvokableTool] = {}
    for tool in tools or []:
      self.register(tool)

  def register(self, tool: InvokableTool) -> InvokableTool:
    if tool.name in self._tools:
      raise ConfigurationError("Duplicate tool name", {"tool": tool.name})
    self._tools[tool.name] = tool
    self.logger.debug(f"Registered tool '{tool.name}'")
    return tool

  def register_function(self, func: Callable, name: Optional[str] = None) -> Tool:
    return self.register(Tool(func, name))

  def names(self) -> List[str]:
    return list(self._tools)

  def get(self, name: str) -> Optional[InvokableTool]:
    return self._tools.get(name)

  def __contains__(self, name: str) -> bool:
    return name in self._tools

  def __len__(self) -> int:
    return len(self._tools)

  async def list(self, names: Optional[Iterable[str]] = None) -> List[dict]:
    """Function schemas of every registered tool, or of the named subset in registration order."""
    if names is None:
      selected = list(self._tools.values())
    else:
      wanted = set(names)
      for unknown in sorted(wanted - set(self._tools)):
        self.logger.warning(f"Tool '{unknown}' is not registered, skipping it")
      selected = [t for n, t in self._tools.items() if n in wanted]
    return [await t.spec() for t in selected]

  async def execute(self, name: str, json_arguments: Optional[str], context: Optional["AgentContext"] = None) -> ToolResult:
    tool = self._tools.get(name)
    if tool is None:
      self.logger.warning(f"The model requested an unknown tool '{name}'")
      return ToolResult.err(ToolErrorKind.UNKNOWN_TOOL, f"Unknown tool '{name}'")

    try:
      value = await tool.invoke(json_arguments, context)
    except ToolArgumentsError as e:
      self.logger.warning(f"Invalid arguments for tool '{name}': {e.reason}")
      return ToolResult.err(ToolErrorKind.INVALID_ARGUMENTS, f"Invalid arguments: {e.reason}")
    except Exception as e:
      self.logger.error(f"Tool '{name}' failed: {type(e).__name__}: {e}")
      return ToolResult.err(ToolErrorKind.EXECUTION_FAILED, f"{type(e).__name__}: {e}")

    if isinstance(value, ToolResult):
      return value
    return ToolResult.ok("" if value is None else str(value))
