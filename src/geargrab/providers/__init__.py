"""Screening vendor abstraction.

Exports the provider contract, normalised vendor types and the registry.
Concrete adapters live in the ``checkr``, ``iprospect`` and ``mock``
subpackages.
"""

from .protocol import BaseScreeningProvider, ScreeningProvider
from .registry import ProviderRegistry, build_provider_registry, default_provider_name
from .types import PollResult, ProviderInfo, ProviderReportStatus, ReportAdjudication

__all__ = [
    "BaseScreeningProvider",
    "PollResult",
    "ProviderInfo",
    "ProviderRegistry",
    "ProviderReportStatus",
    "ReportAdjudication",
    "ScreeningProvider",
    "build_provider_registry",
    "default_provider_name",
]
