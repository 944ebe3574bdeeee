class AppError(Exception):
    """Base application error for the device geolocation service."""


class IpProviderError(AppError):
    """Base error for IP geolocation provider failures."""


class RateLimitedError(IpProviderError):
    """Raised when the provider signals rate limiting or an exhausted quota."""


class InvalidIpError(IpProviderError):
    """Raised when the provider rejects the supplied IP address as invalid."""


class ReservedIpError(IpProviderError):
    """Raised when the supplied IP address is reserved/private (e.g. 127.0.0.1, 192.168.x.x)."""


class IpNotFoundError(IpProviderError):
    """Raised when no geolocation information is found for the IP."""


class UpstreamServiceError(IpProviderError):
    """Raised when the upstream IP provider fails."""


class MalformedResponseError(UpstreamServiceError):
    """Raised when the provider answers with a body we cannot interpret."""
