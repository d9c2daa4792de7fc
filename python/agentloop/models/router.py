"""
Maps a model spec to a configured provider and a provider-native model name.

Resolution order:
  1. blank spec: the default provider with its default model
  2. "provider:model" with a configured provider: used verbatim
  3. well-known model name prefixes (gpt-, o1, claude, llama, ...)
  4. anything else: the default provider with the spec as model name
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .provider import Provider
from ..errors import ConfigurationError
from ..logs.logs import get_logger


OPENAI = "openai"
ANTHROPIC = "anthropic"
OLLAMA = "ollama"

PROVIDER_PRIORITY = [OPENAI, ANTHROPIC, OLLAMA]

DEFAULT_MODELS = {
  OPENAI: "gpt-4o",
  ANTHROPIC: "claude-sonnet-4-20250514",
  OLLAMA: "llama3.2",
}
FALLBACK_MODEL = "gpt-4o"

MODEL_PREFIXES = [
  (("gpt-", "o1", "o3", "o4"), OPENAI),
  (("claude",), ANTHROPIC),
  (("llama", "mistral", "gemma", "qwen", "deepseek", "phi"), OLLAMA),
]


@dataclass(frozen=True)
class ResolvedModel:
  provider: Provider
  model_name: str
  provider_id: str


def default_model_for(provider_id: str) -> str:
  return DEFAULT_MODELS.get(provider_id, FALLBACK_MODEL)


def classify_model(model_spec: str) -> Optional[str]:
  lowered = model_spec.lower()
  for prefixes, provider_id in MODEL_PREFIXES:
    if lowered.startswith(prefixes):
      return provider_id
  return None


class ProviderRouter:
  def __init__(self, providers: Mapping[str, Provider]):
    self.logger = get_logger("router")
    self._providers: Dict[str, Provider] = {k.lower(): v for k, v in providers.items()}
    if not self._providers:
      raise ConfigurationError(
        "No model provider configured. Set OPENAI_API_KEY, ANTHROPIC_API_KEY or OLLAMA_API_BASE"
      )

    preferred = [p for p in PROVIDER_PRIORITY if p in self._providers]
    self._default_id = preferred[0] if preferred else next(iter(self._providers))
    self.logger.info(f"Configured providers: {', '.join(self._providers)} (default: {self._default_id})")

  @classmethod
  def from_environment(cls) -> "ProviderRouter":
    from .clients.provider_config import configured_providers

    return cls(configured_providers())

  @property
  def default(self) -> Provider:
    return self._providers[self._default_id]

  @property
  def default_provider_id(self) -> str:
    return self._default_id

  @property
  def provider_ids(self) -> List[str]:
    return list(self._providers)

  def get(self, provider_id: str) -> Optional[Provider]:
    return self._providers.get(provider_id.lower())

  def resolve(self, model_spec: Optional[str]) -> ResolvedModel:
    if model_spec is None or not model_spec.strip():
      return self._on_default(default_model_for(self._default_id))

    spec = model_spec.strip()

    if ":" in spec:
      prefix, _, model_name = spec.partition(":")
      provider_id = prefix.strip().lower()
      if provider_id in self._providers:
        return ResolvedModel(self._providers[provider_id], model_name, provider_id)
      self.logger.warning(f"Unknown provider '{prefix}' in model spec '{spec}', resolving it as a model name")

    classified = classify_model(spec)
    if classified is not None:
      if classified in self._providers:
        return ResolvedModel(self._providers[classified], spec, classified)
      self.logger.debug(f"Model '{spec}' belongs to '{classified}' which is not configured")

    return self._on_default(spec)

  def _on_default(self, model_name: str) -> ResolvedModel:
    return ResolvedModel(self._providers[self._default_id], model_name, self._default_id)
