from typing import Protocol, runtime_checkable


@runtime_checkable
class Channel(Protocol):
  """A destination for agent output: a REST poller, a chat bot, a web socket..."""

  name: str

  def send_message(self, message: str) -> None: ...
