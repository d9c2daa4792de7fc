from typing import Any, Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
  from ..agents.context import AgentContext


class InvokableTool(Protocol):
  name: str

  async def spec(self) -> dict: ...

  async def invoke(self, json_argument: Optional[str], context: Optional["AgentContext"] = None) -> Any: ...
