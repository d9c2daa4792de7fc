from collections import deque
from typing import List

from .channel import Channel
from ..logs.logs import get_logger


class RestChannel(Channel):
  """Buffers messages until a REST client polls for them."""

  name = "rest"

  def __init__(self):
    self.logger = get_logger("channel")
    self._pending = deque()

  def send_message(self, message: str) -> None:
    self.logger.debug(f"REST channel buffering message: {message[:50]}...")
    self._pending.append(message)

  def drain_messages(self) -> List[str]:
    drained = []
    while self._pending:
      drained.append(self._pending.popleft())
    return drained

  def has_pending_messages(self) -> bool:
    return len(self._pending) > 0
