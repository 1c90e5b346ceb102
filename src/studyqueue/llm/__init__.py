"""LLM tooling for the study-note generators."""

from .providers import (
    LangChainChatProvider,
    ProviderDependencyError,
    ProviderError,
    ProviderSettings,
    build_provider,
    build_provider_from_config,
)

__all__ = [
    "LangChainChatProvider",
    "ProviderError",
    "ProviderDependencyError",
    "ProviderSettings",
    "build_provider",
    "build_provider_from_config",
]
