import threading

from typing import Dict, List, Optional

from .channel import Channel
from .rest import RestChannel
from ..logs.logs import get_logger


class ChannelRegistry:
  """
  Channels keyed by name, remembering which one was active last.

  Background drivers (scheduled jobs, heartbeats) use ``send_to_last_active``
  to deliver output where the user last talked to the agent. The built-in
  REST channel is always registered and is the fallback destination.
  """

  def __init__(self, rest_channel: Optional[RestChannel] = None):
    self.logger = get_logger("channel")
    self._channels: Dict[str, Channel] = {}
    self._last_active: Optional[str] = None
    self._lock = threading.Lock()
    self.rest_channel = rest_channel or RestChannel()
    self.register(self.rest_channel)

  def register(self, channel: Channel):
    with self._lock:
      self._channels[channel.name] = channel
    self.logger.info(f"Channel registered: {channel.name}")

  def unregister(self, name: str):
    with self._lock:
      self._channels.pop(name, None)
      if self._last_active == name:
        self._last_active = None
    self.logger.info(f"Channel unregistered: {name}")

  def mark_active(self, name: str):
    with self._lock:
      if name in self._channels:
        self._last_active = name
        self.logger.debug(f"Last active channel: {name}")

  def last_active(self) -> Channel:
    with self._lock:
      channel = self._channels.get(self._last_active) if self._last_active else None
    return channel or self.rest_channel

  def get(self, name: str) -> Optional[Channel]:
    return self._channels.get(name)

  def list(self) -> List[str]:
    with self._lock:
      return list(self._channels)

  def send_to_last_active(self, message: str):
    channel = self.last_active()
    self.logger.debug(f"Routing message to channel: {channel.name}")
    channel.send_message(message)
