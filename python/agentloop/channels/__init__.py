from .channel import Channel
from .rest import RestChannel
from .registry import ChannelRegistry

__all__ = ["Channel", "ChannelRegistry", "RestChannel"]
