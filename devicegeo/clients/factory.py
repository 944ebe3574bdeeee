from collections.abc import Sequence

from devicegeo.clients.base import BaseIPLookupClient
from devicegeo.clients.ip_api_co_client import IpApiCo
from devicegeo.clients.ip_api_com_client import IpApiCom
from devicegeo.clients.ipinfo_io_client import IpInfoIo
from devicegeo.settings import Settings


class IpLookupProviderFactory:
    """Factory for IP lookup provider adapters.

    Given a provider name, returns a concrete adapter configured from settings.
    """

    PROVIDERS_MAP: dict[str, type[BaseIPLookupClient]] = {
        IpApiCo.name: IpApiCo,
        IpApiCom.name: IpApiCom,
        IpInfoIo.name: IpInfoIo,
    }

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def __call__(self, name: str) -> BaseIPLookupClient:
        try:
            client_cls = self.PROVIDERS_MAP[name]
        except KeyError:
            known = ", ".join(self.PROVIDERS_MAP)
            raise ValueError(f"Unknown IP provider {name!r}; expected one of: {known}") from None

        timeout = self._settings.PROVIDER_TIMEOUT_SECONDS
        if client_cls is IpInfoIo:
            return IpInfoIo(timeout_seconds=timeout, token=self._settings.IPINFO_TOKEN)
        return client_cls(timeout_seconds=timeout)


def build_providers(settings: Settings, order: Sequence[str] | None = None) -> tuple[BaseIPLookupClient, ...]:
    """Build the fixed, ordered fallback chain."""
    factory = IpLookupProviderFactory(settings)
    names = settings.PROVIDER_ORDER if order is None else order
    if not names:
        raise ValueError("At least one IP provider must be configured")
    return tuple(factory(name) for name in names)
