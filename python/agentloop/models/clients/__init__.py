from .litellm_client import LiteLLMClient, ToolCallAccumulator, to_litellm_messages
from .provider_config import configured_providers

__all__ = ["LiteLLMClient", "ToolCallAccumulator", "configured_providers", "to_litellm_messages"]
