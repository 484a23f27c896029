"""Per-provider credential acquisition.

Each ProviderKind has exactly one strategy:

- STATIC_TOKEN: configured token, no network call (Okta ``SSWS`` style)
- OAUTH2_CLIENT_CREDENTIALS: client credentials grant (Entra ID / Azure AD)
- SERVICE_ACCOUNT_JWT: RS256-signed assertion exchanged for an access token
  (RFC 7523, Google service accounts)

Tokens are fetched on every call; nothing is cached between syncs.

Usage:
    credential = acquire_credential(provider_config, session)
    if credential:
        headers["Authorization"] = credential.header_value
"""
from __future__ import annotations
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import jwt
import requests
from cryptography.hazmat.primitives import serialization

from scim_sync.core.models import ProviderConfig, ProviderKind
from .exceptions import (
    CredentialAcquisitionError,
    ProviderAPIError,
    ProviderConfigurationError,
    ProviderError,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5

ENTRA_TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
ENTRA_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_DEFAULT_SCOPE = (
    "https://www.googleapis.com/auth/admin.directory.user "
    "https://www.googleapis.com/auth/admin.directory.group"
)
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 3600


@dataclass(frozen=True)
class Credential:
    """Authentication artifact for one outbound request."""
    scheme: str
    token: str

    @property
    def header_value(self) -> str:
        return f"{self.scheme} {self.token}"


class CredentialStrategy:
    """Base class: produce a Credential or raise ProviderError."""

    def acquire(self, config: ProviderConfig, session: Optional[requests.Session] = None,
                timeout: float = REQUEST_TIMEOUT) -> Credential:
        raise NotImplementedError


def _post_form(url: str, data: Dict[str, str], session: Optional[requests.Session],
               timeout: float) -> str:
    """POST a token request and return the ``access_token`` field."""
    post = session.post if session is not None else requests.post
    resp = post(url, data=data, timeout=timeout)
    if resp.status_code != 200:
        raise ProviderAPIError(resp.status_code, resp.text, url)
    try:
        token = resp.json().get("access_token")
    except ValueError as exc:
        raise CredentialAcquisitionError(f"Token response from {url} is not JSON") from exc
    if not token:
        raise CredentialAcquisitionError(f"Token response from {url} has no access_token")
    return token


class StaticTokenCredentials(CredentialStrategy):
    def acquire(self, config, session=None, timeout=REQUEST_TIMEOUT):
        if not config.api_token:
            raise ProviderConfigurationError(f"{config.name}: ApiToken is required")
        return Credential(config.token_scheme or "SSWS", config.api_token)


class OAuth2ClientCredentials(CredentialStrategy):
    def acquire(self, config, session=None, timeout=REQUEST_TIMEOUT):
        missing = [
            key for key, value in (
                ("TenantId", config.tenant_id),
                ("ClientId", config.client_id),
                ("ClientSecret", config.client_secret),
            ) if not value
        ]
        if missing:
            raise ProviderConfigurationError(f"{config.name}: missing {', '.join(missing)}")

        url = config.token_url or ENTRA_TOKEN_URL.format(tenant_id=config.tenant_id)
        data = {
            "grant_type": "client_credentials",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "scope": config.scope or ENTRA_DEFAULT_SCOPE,
        }
        return Credential("Bearer", _post_form(url, data, session, timeout))


class ServiceAccountJWTCredentials(CredentialStrategy):
    """Signed-JWT bearer exchange for service accounts.

    ``private_key_path`` may point at a PEM private key or at a Google JSON
    key file; for the latter ``private_key`` and, when not configured,
    ``client_email`` are taken from the file.
    """

    def acquire(self, config, session=None, timeout=REQUEST_TIMEOUT):
        if not config.private_key_path:
            raise ProviderConfigurationError(f"{config.name}: PrivateKeyPath is required")

        private_key_pem, file_email = self._read_key(config.private_key_path)
        email = config.service_account_email or file_email
        if not email:
            raise ProviderConfigurationError(f"{config.name}: ServiceAccountEmail is required")

        url = config.token_url or GOOGLE_TOKEN_URL
        assertion = self.build_assertion(
            private_key_pem,
            issuer=email,
            audience=url,
            scope=config.scope or GOOGLE_DEFAULT_SCOPE,
            subject=config.subject or None,
        )
        data = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        return Credential("Bearer", _post_form(url, data, session, timeout))

    @staticmethod
    def build_assertion(private_key_pem: str, *, issuer: str, audience: str, scope: str,
                        subject: Optional[str] = None, now: Optional[int] = None) -> str:
        """Sign the RS256 assertion sent to the token endpoint."""
        try:
            key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
        except (ValueError, TypeError) as exc:
            raise CredentialAcquisitionError(f"Invalid service account private key: {exc}") from exc

        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": issuer,
            "scope": scope,
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME,
        }
        if subject:
            claims["sub"] = subject
        return jwt.encode(claims, key, algorithm="RS256")

    @staticmethod
    def _read_key(path: str) -> tuple[str, str]:
        key_file = Path(path)
        try:
            content = key_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise CredentialAcquisitionError(f"Cannot read private key {path}: {exc}") from exc

        if key_file.suffix.lower() == ".json":
            try:
                data = json.loads(content)
            except json.JSONDecodeError as exc:
                raise CredentialAcquisitionError(f"Key file {path} is not valid JSON") from exc
            return data.get("private_key", ""), data.get("client_email", "")
        return content, ""


_STRATEGIES: Dict[ProviderKind, CredentialStrategy] = {
    ProviderKind.STATIC_TOKEN: StaticTokenCredentials(),
    ProviderKind.OAUTH2_CLIENT_CREDENTIALS: OAuth2ClientCredentials(),
    ProviderKind.SERVICE_ACCOUNT_JWT: ServiceAccountJWTCredentials(),
}


def get_strategy(kind: ProviderKind) -> CredentialStrategy:
    return _STRATEGIES[ProviderKind(kind)]


def acquire_credential(config: ProviderConfig, session: Optional[requests.Session] = None,
                       timeout: float = REQUEST_TIMEOUT) -> Optional[Credential]:
    """Acquire a credential for ``config``; never raises.

    Returns:
        Credential, or None when acquisition failed (the failure is logged and
        the caller decides whether to proceed unauthenticated).
    """
    try:
        return get_strategy(config.kind).acquire(config, session=session, timeout=timeout)
    except ProviderConfigurationError as exc:
        logger.warning(f"Credential configuration error for {config.name}: {exc}")
    except ProviderError as exc:
        logger.warning(f"Credential acquisition failed for {config.name}: {exc}")
    except Exception as exc:
        logger.error(f"Unexpected error acquiring credential for {config.name}: {exc}", exc_info=True)
    return None
