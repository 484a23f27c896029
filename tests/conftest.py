"""Pytest shared fixtures for sync tests."""
import json
import pathlib
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from scim_sync.core.models import ProviderConfig, ProviderKind, User


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live endpoints through module-level
    requests functions. Tests exercise HTTP through FakeSession instead.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in unit test: {url}")

    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "get", _blocked)


# ─────────────────────────────────────────────────────────────────────────────
# Fake pooled HTTP session
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    def __init__(self, status_code: int = 200, payload: Optional[dict] = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload or {})

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Stand-in for requests.Session recording every call.

    ``routes`` maps ``(METHOD, url)`` or ``url`` to a StubResponse, an
    exception instance (raised) or a callable returning either.
    """

    def __init__(self, routes: Optional[dict] = None):
        self.routes = dict(routes or {})
        self.calls = []

    def _respond(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        route = self.routes.get((method, url), self.routes.get(url))
        if route is None:
            raise requests.ConnectionError(f"No route for {method} {url}")
        if callable(route) and not isinstance(route, StubResponse):
            route = route(method, url, **kwargs)
        if isinstance(route, Exception):
            raise route
        return route

    def request(self, method, url, **kwargs):
        return self._respond(method, url, **kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)

    def calls_to(self, prefix: str):
        return [c for c in self.calls if c["url"].startswith(prefix)]


@pytest.fixture()
def fake_session():
    return FakeSession()


# ─────────────────────────────────────────────────────────────────────────────
# Domain fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def alice():
    return User(
        id=1,
        scim_id="2819c223-7f76-453a-919d-413861904646",
        user_name="alice",
        first_name="Alice",
        last_name="Smith",
        email="alice@example.com",
        department="Engineering",
        job_title="Engineer",
    )


def static_provider(name="Okta", base_url="https://okta.test/scim/v2", token="abc123", enabled=True):
    return ProviderConfig(
        name=name,
        kind=ProviderKind.STATIC_TOKEN,
        base_url=base_url,
        enabled=enabled,
        api_token=token,
    )


def oauth_provider(name="AzureAD", base_url="https://graph.test/scim", enabled=True, **overrides):
    values = dict(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="secret-1",
        token_url="https://login.test/tenant-1/token",
    )
    values.update(overrides)
    return ProviderConfig(
        name=name,
        kind=ProviderKind.OAUTH2_CLIENT_CREDENTIALS,
        base_url=base_url,
        enabled=enabled,
        **values,
    )


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for service account assertions."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )

    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_pem": public_pem,
    }


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (real HTTP allowed)"
    )
