from .provider import ModelDelta, ModelTurn, Provider
from .router import ProviderRouter, ResolvedModel, classify_model, default_model_for

__all__ = ["ModelDelta", "ModelTurn", "Provider", "ProviderRouter", "ResolvedModel", "classify_model", "default_model_for"]
