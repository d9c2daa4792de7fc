from typing import Optional, TYPE_CHECKING

from .response import AgentResponse

if TYPE_CHECKING:
  from .runner import RunStateMachine


class AgentStream:
  """
  Text fragments of a streaming run, in the order the model produced them.

  Iterating drives the run: nothing is requested from a provider until the
  first fragment is pulled, and closing the stream early stops the run
  without further provider calls. A provider failure is raised from the
  iteration as ProviderError.

  ``response`` is available once the stream is exhausted. It tells whether
  the run finished or hit the turn budget.

    async with runner.run_streaming(agent, messages) as stream:
      async for fragment in stream:
        print(fragment, end="")
    print(stream.response.truncated)
  """

  def __init__(self, machine: "RunStateMachine"):
    self._machine = machine
    self._fragments = machine.run()
    self._response: Optional[AgentResponse] = None
    self.closed = False

  @property
  def response(self) -> Optional[AgentResponse]:
    return self._response

  @property
  def context(self):
    return self._machine.context

  def __aiter__(self):
    return self

  async def __anext__(self) -> str:
    if self.closed:
      raise StopAsyncIteration
    try:
      return await self._fragments.__anext__()
    except StopAsyncIteration:
      self._response = self._machine.response()
      self.closed = True
      raise

  async def aclose(self):
    if not self.closed:
      self.closed = True
      await self._fragments.aclose()

  async def collect(self) -> str:
    return "".join([fragment async for fragment in self])

  async def __aenter__(self):
    return self

  async def __aexit__(self, exc_type, exc, tb):
    await self.aclose()
