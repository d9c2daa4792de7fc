import os

from typing import Dict, Mapping, Optional

from .litellm_client import LiteLLMClient
from ..provider import Provider
from ...logs import get_logger

DEFAULT_OLLAMA_API_BASE = "http://localhost:11434"
DEFAULT_REQUEST_TIMEOUT = 120.0
DEFAULT_MAX_TOKENS = 4096


def env_flag(name: str, env: Mapping[str, str]) -> bool:
  return env.get(name, "").strip().lower() in ["1", "true", "yes", "on"]


def env_number(name: str, default, env: Mapping[str, str], cast=float):
  value = env.get(name)
  if value is None or not value.strip():
    return default
  try:
    return cast(value)
  except ValueError:
    get_logger("config").warning(f"Ignoring {name}={value!r}, it is not a number")
    return default


def configured_providers(env: Optional[Mapping[str, str]] = None) -> Dict[str, Provider]:
  """
  Build a litellm client for every provider with credentials in the environment.

    OPENAI_API_KEY, OPENAI_API_BASE        -> "openai"
    ANTHROPIC_API_KEY, ANTHROPIC_API_BASE  -> "anthropic"
    OLLAMA_API_BASE or AGENTLOOP_OLLAMA_ENABLED -> "ollama"
  """
  env = os.environ if env is None else env
  logger = get_logger("config")

  common = {
    "request_timeout": env_number("AGENTLOOP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, env),
    "max_tokens": env_number("AGENTLOOP_MAX_TOKENS", DEFAULT_MAX_TOKENS, env, int),
  }

  providers: Dict[str, Provider] = {}
  if env.get("OPENAI_API_KEY"):
    providers["openai"] = LiteLLMClient(
      "openai", "openai", api_base=env.get("OPENAI_API_BASE"), api_key=env["OPENAI_API_KEY"], **common
    )
  if env.get("ANTHROPIC_API_KEY"):
    providers["anthropic"] = LiteLLMClient(
      "anthropic", "anthropic", api_base=env.get("ANTHROPIC_API_BASE"), api_key=env["ANTHROPIC_API_KEY"], **common
    )
  if env.get("OLLAMA_API_BASE") or env_flag("AGENTLOOP_OLLAMA_ENABLED", env):
    providers["ollama"] = LiteLLMClient(
      "ollama", "ollama_chat", api_base=env.get("OLLAMA_API_BASE") or DEFAULT_OLLAMA_API_BASE, **common
    )

  logger.debug(f"Providers found in the environment: {list(providers)}")
  return providers
