"""Adapters for third-party inference providers."""

from .providers_base import CancelResult, ProviderAdapter, ProviderStatus, SubmitResult
from .providers_factory import AdapterDirectory, create_adapter
from .providers_replicate import ReplicateAdapter

__all__ = [
    "AdapterDirectory",
    "CancelResult",
    "ProviderAdapter",
    "ProviderStatus",
    "ReplicateAdapter",
    "SubmitResult",
    "create_adapter",
]
