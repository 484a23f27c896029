"""Settings loader with YAML provider file, environment variables and Docker secrets."""
from __future__ import annotations
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml

from scim_sync.core.models import ProviderConfig, ProviderKind

# Provider file key -> ProviderConfig attribute
_FIELD_MAP = {
    "BaseUrl": "base_url",
    "ApiToken": "api_token",
    "TokenScheme": "token_scheme",
    "TenantId": "tenant_id",
    "ClientId": "client_id",
    "ClientSecret": "client_secret",
    "ServiceAccountEmail": "service_account_email",
    "PrivateKeyPath": "private_key_path",
    "Subject": "subject",
    "TokenUrl": "token_url",
    "Scope": "scope",
}

# Keys that may be supplied through /run/secrets or environment instead of the file
_SECRET_KEYS = ("ApiToken", "ClientSecret")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            print(f"[settings] ✓ Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def infer_provider_kind(entry: Mapping[str, Any]) -> ProviderKind:
    """Determine the authentication strategy of a provider entry.

    An explicit ``Kind`` wins; otherwise the strategy is inferred from which
    parameter keys are present.

    Raises:
        ValueError: Unknown Kind or no strategy keys present
    """
    kind = entry.get("Kind")
    if kind:
        try:
            return ProviderKind(str(kind).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider Kind: {kind!r}") from None

    if "ServiceAccountEmail" in entry or "PrivateKeyPath" in entry:
        return ProviderKind.SERVICE_ACCOUNT_JWT
    if "TenantId" in entry or "ClientId" in entry or "ClientSecret" in entry:
        return ProviderKind.OAUTH2_CLIENT_CREDENTIALS
    if "ApiToken" in entry:
        return ProviderKind.STATIC_TOKEN
    raise ValueError("Provider entry declares no Kind and no authentication keys")


def parse_provider_entry(name: str, entry: Mapping[str, Any]) -> ProviderConfig:
    """Build a ProviderConfig from one provider file entry.

    Empty secrets are resolved from ``/run/secrets/<name>_<key>`` then the
    ``SCIM_<NAME>_<KEY>`` environment variable.
    """
    if not isinstance(entry, Mapping):
        raise ValueError(f"Provider {name!r} must be a mapping")
    if not entry.get("BaseUrl"):
        raise ValueError(f"Provider {name!r} has no BaseUrl")

    values: dict[str, Any] = {}
    for key, attr in _FIELD_MAP.items():
        value = entry.get(key)
        if value is not None:
            values[attr] = str(value)

    slug = _slug(name)
    for key in _SECRET_KEYS:
        attr = _FIELD_MAP[key]
        if not values.get(attr):
            secret = _load_secret_from_file(
                f"{slug}_{_snake(key)}",
                f"SCIM_{slug.upper()}_{_snake(key).upper()}",
            )
            if secret:
                values[attr] = secret

    return ProviderConfig(
        name=name,
        kind=infer_provider_kind(entry),
        enabled=_as_bool(entry.get("Enabled"), default=False),
        **values,
    )


def parse_provider_entries(document: Any) -> list[ProviderConfig]:
    """Parse the provider section of a configuration document.

    Accepted shapes (order is preserved):
        {"ScimSettings": {"CloudIntegrations": {"Okta": {...}, "AzureAD": {...}}}}
        {"CloudIntegrations": [{"Name": "Okta", ...}, ...]}
        [{"Name": "Okta", ...}, ...]
    """
    if document is None:
        return []
    section: Any = document
    if isinstance(section, Mapping) and "ScimSettings" in section:
        section = section["ScimSettings"] or {}
    if isinstance(section, Mapping) and "CloudIntegrations" in section:
        section = section["CloudIntegrations"] or {}

    entries: Iterable[tuple[str, Any]]
    if isinstance(section, Mapping):
        entries = section.items()
    elif isinstance(section, list):
        named = []
        for item in section:
            if not isinstance(item, Mapping) or not item.get("Name"):
                raise ValueError("Provider list entries require a Name")
            named.append((str(item["Name"]), item))
        entries = named
    else:
        raise ValueError("Provider configuration must be a mapping or a list")

    providers = [parse_provider_entry(str(name), entry) for name, entry in entries]
    names = [p.name for p in providers]
    if len(names) != len(set(names)):
        raise ValueError("Provider names must be unique")
    return providers


def load_provider_file(path: str | Path) -> list[ProviderConfig]:
    """Read providers from a YAML (or JSON) file."""
    with Path(path).open("r", encoding="utf-8") as handle:
        return parse_provider_entries(yaml.safe_load(handle))


@dataclass
class AppConfig:
    """Application configuration container."""
    providers: list[ProviderConfig] = field(default_factory=list)
    providers_file: str = ""

    # Local SCIM base path used for meta.location
    scim_base_url: str = "/scim/v2"

    # Transport
    request_timeout: float = 5.0
    sync_timeout: float = 30.0
    max_workers: int = 4

    # Policy
    require_credential: bool = False
    audit_enabled: bool = False

    @property
    def enabled_providers(self) -> list[ProviderConfig]:
        return [p for p in self.providers if p.enabled]


def _env_float(var_name: str, default: float) -> float:
    raw = os.environ.get(var_name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be a number, got {raw!r}") from None


def load_settings() -> AppConfig:
    """Load application settings from environment and the provider file."""
    providers_file = os.environ.get("SCIM_PROVIDERS_FILE", "").strip()
    providers: list[ProviderConfig] = []
    if providers_file:
        if not Path(providers_file).exists():
            raise RuntimeError(f"SCIM_PROVIDERS_FILE {providers_file} does not exist")
        providers = load_provider_file(providers_file)
    else:
        print("[settings] SCIM_PROVIDERS_FILE not set; no providers configured")

    cfg = AppConfig(
        providers=providers,
        providers_file=providers_file,
        scim_base_url=os.environ.get("SCIM_BASE_URL", "/scim/v2").rstrip("/") or "/scim/v2",
        request_timeout=_env_float("SCIM_REQUEST_TIMEOUT", 5.0),
        sync_timeout=_env_float("SCIM_SYNC_TIMEOUT", 30.0),
        max_workers=max(1, int(_env_float("SCIM_SYNC_MAX_WORKERS", 4))),
        require_credential=_as_bool(os.environ.get("SCIM_REQUIRE_CREDENTIAL")),
        audit_enabled=_as_bool(os.environ.get("SCIM_AUDIT_ENABLED")),
    )

    enabled = ", ".join(p.name for p in cfg.enabled_providers) or "none"
    print(f"[settings] providers={len(cfg.providers)}; enabled={enabled}; base_url={cfg.scim_base_url}")
    return cfg


_settings: Optional[AppConfig] = None


def get_settings() -> AppConfig:
    """Return process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
