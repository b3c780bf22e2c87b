"""Provider registry for screening vendor lookup.

The registry is built once at startup from settings and passed by
reference to the orchestrator and admin services. It cannot be mutated
after construction.
"""

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from geargrab.config.settings import Settings
from geargrab.core.exceptions import ProviderNotFoundError
from geargrab.core.logging import get_logger

from .protocol import ScreeningProvider
from .types import ProviderInfo

logger = get_logger(__name__)


class ProviderRegistry:
    """Read-only collection of named screening providers.

    Usage:
        registry = ProviderRegistry([checkr, mock], default="mock")
        provider = registry.get("checkr")
        fallback = registry.default()
    """

    def __init__(self, providers: Iterable[ScreeningProvider], default: str):
        """Initialize the registry.

        Args:
            providers: Provider instances, keyed by their ``provider_id``.
            default: Name returned by ``default()``.

        Raises:
            ValueError: If two providers share an id.
            ProviderNotFoundError: If ``default`` is not among ``providers``.
        """
        table: dict[str, ScreeningProvider] = {}
        for provider in providers:
            if provider.provider_id in table:
                raise ValueError(f"Provider already registered: {provider.provider_id}")
            table[provider.provider_id] = provider

        if default not in table:
            raise ProviderNotFoundError(default)

        self._providers = MappingProxyType(table)
        self._default = default

        logger.info(
            "provider_registry_built",
            providers=list(table),
            default_provider=default,
        )

    def get(self, name: str) -> ScreeningProvider:
        """Get a provider by name.

        Raises:
            ProviderNotFoundError: If no provider is registered under ``name``.
        """
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderNotFoundError(name) from None

    def default(self) -> ScreeningProvider:
        """Get the environment's default provider."""
        return self._providers[self._default]

    @property
    def default_name(self) -> str:
        return self._default

    def names(self) -> list[str]:
        return list(self._providers)

    def list_providers(self) -> list[ProviderInfo]:
        """Static info for every registered provider."""
        return [p.provider_info for p in self._providers.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[ScreeningProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    async def aclose(self) -> None:
        """Close provider HTTP clients."""
        for provider in self._providers.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()


def default_provider_name(settings: Settings) -> str:
    """Resolve the default provider for the configured environment."""
    if settings.SCREENING_DEFAULT_PROVIDER:
        return settings.SCREENING_DEFAULT_PROVIDER
    return "checkr" if settings.is_production else "mock"


def build_provider_registry(
    settings: Settings,
    extra_providers: Iterable[ScreeningProvider] = (),
) -> ProviderRegistry:
    """Construct the registry for an environment.

    Vendor adapters are always registered. The mock provider is registered
    outside production only.

    Args:
        settings: Application settings.
        extra_providers: Additional providers (e.g. a configured mock for tests).
    """
    from .checkr import CheckrProvider
    from .iprospect import IProspectCheckProvider
    from .mock import MockScreeningProvider

    extra = list(extra_providers)
    extra_ids = {p.provider_id for p in extra}

    providers: list[ScreeningProvider] = []
    if "checkr" not in extra_ids:
        providers.append(CheckrProvider(settings.checkr_endpoint()))
    if "iprospect" not in extra_ids:
        providers.append(IProspectCheckProvider(settings.iprospect_endpoint()))
    if not settings.is_production and "mock" not in extra_ids:
        providers.append(MockScreeningProvider())
    providers.extend(extra)

    return ProviderRegistry(providers, default=default_provider_name(settings))
