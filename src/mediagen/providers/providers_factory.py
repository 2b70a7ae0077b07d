"""Factory for provider adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .providers_base import ProviderAdapter
from .providers_replicate import ReplicateAdapter

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from ..config import AppConfig


def create_adapter(name: str, config: "AppConfig") -> ProviderAdapter:
    """Instantiate provider adapter by name."""
    lower = name.lower()
    if lower == "replicate":
        return ReplicateAdapter(
            api_token=config.replicate.api_token,
            base_url=config.replicate.base_url,
            timeout_seconds=config.replicate.timeout_seconds,
            webhook_secret=config.replicate.webhook_secret,
        )
    raise ValueError(f"Unsupported provider '{name}'")


class AdapterDirectory:
    """One adapter instance per provider, created lazily at first use."""

    def __init__(self, config: "AppConfig", adapters: dict[str, ProviderAdapter] | None = None) -> None:
        self._config = config
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})

    def get(self, provider: str) -> ProviderAdapter:
        key = provider.lower()
        adapter = self._adapters.get(key)
        if adapter is None:
            adapter = create_adapter(key, self._config)
            self._adapters[key] = adapter
        return adapter

    def __contains__(self, provider: str) -> bool:
        return provider.lower() in self._adapters
