"""Provider-specific exceptions for credential and transport errors."""


class ProviderError(Exception):
    """Base exception for all external provider operations."""
    pass


class ProviderAPIError(ProviderError):
    """HTTP error from a provider endpoint (token or SCIM).

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: Endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class ProviderConfigurationError(ProviderError):
    """A required strategy parameter is missing from the provider entry."""
    pass


class CredentialAcquisitionError(ProviderError):
    """Token could not be produced (unreadable key, malformed token response)."""
    pass
