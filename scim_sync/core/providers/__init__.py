"""External identity provider integration.

Architecture:
- credentials.py: one credential strategy per ProviderKind
- request_builder.py: operation → (method, url, body) mapping
- exceptions.py: typed exceptions for error handling
"""
from .credentials import (
    Credential,
    CredentialStrategy,
    StaticTokenCredentials,
    OAuth2ClientCredentials,
    ServiceAccountJWTCredentials,
    acquire_credential,
    get_strategy,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    ProviderError,
    ProviderAPIError,
    ProviderConfigurationError,
    CredentialAcquisitionError,
)
from .request_builder import (
    ProviderRequest,
    build_request,
    USERS,
    GROUPS,
)

__all__ = [
    # Credentials
    "Credential",
    "CredentialStrategy",
    "StaticTokenCredentials",
    "OAuth2ClientCredentials",
    "ServiceAccountJWTCredentials",
    "acquire_credential",
    "get_strategy",
    "REQUEST_TIMEOUT",

    # Exceptions
    "ProviderError",
    "ProviderAPIError",
    "ProviderConfigurationError",
    "CredentialAcquisitionError",

    # Requests
    "ProviderRequest",
    "build_request",
    "USERS",
    "GROUPS",
]
