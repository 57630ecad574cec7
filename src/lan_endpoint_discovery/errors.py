"""
Exceptions raised by lan_endpoint_discovery.

Network failures are never raised: an unreachable host is an ordinary probe
outcome and total discovery failure degrades to a default address.
"""


class DiscoveryError(Exception):
    """Base class for lan_endpoint_discovery errors."""
    pass


class InvalidAddressError(DiscoveryError, ValueError):
    """Raised when a string is not a dotted-quad address or 'localhost'."""

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class ResolverNotInitializedError(DiscoveryError):
    """Raised when an endpoint is read before any resolution has happened."""
    pass
