"""Custom exception hierarchy for AWS peer discovery."""


class DiscoveryError(Exception):
    """Base exception for all peer discovery errors."""


class ConfigError(DiscoveryError):
    """Invalid or missing configuration."""


class MetadataError(DiscoveryError):
    """The EC2 instance metadata service could not be queried."""


class AWSAPIError(DiscoveryError):
    """Error communicating with an AWS query API endpoint."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class PeerDiscoveryError(DiscoveryError):
    """Discovery is broken (as opposed to "no peers"); surfaced to the caller."""
