"""Identity entities, provider configuration and sync outcome types."""
from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class User:
    """Local user record as owned by the persistence layer."""
    user_name: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: Optional[str] = None
    department: Optional[str] = None
    job_title: Optional[str] = None
    is_active: bool = True
    created_at: datetime.datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime.datetime] = None
    external_id: Optional[str] = None

    # Local key, assigned by the repository
    id: Optional[int] = None

    # SCIM specific
    scim_id: Optional[str] = None
    meta_location: Optional[str] = None
    meta_resource_type: Optional[str] = "User"
    meta_last_modified: Optional[datetime.datetime] = None
    meta_version: Optional[str] = None


@dataclass
class UserGroup:
    """Membership association between a user and a group."""
    user_id: int
    group_id: int
    created_at: datetime.datetime = field(default_factory=utcnow)


@dataclass
class Group:
    display_name: str = ""
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime.datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime.datetime] = None
    external_id: Optional[str] = None
    id: Optional[int] = None
    scim_id: Optional[str] = None
    meta_location: Optional[str] = None
    meta_resource_type: Optional[str] = "Group"
    meta_last_modified: Optional[datetime.datetime] = None
    meta_version: Optional[str] = None
    members: list[UserGroup] = field(default_factory=list)


class ProviderKind(str, Enum):
    """Authentication strategy declared by a provider entry."""
    STATIC_TOKEN = "static_token"
    OAUTH2_CLIENT_CREDENTIALS = "oauth2_client_credentials"
    SERVICE_ACCOUNT_JWT = "service_account_jwt"


@dataclass
class ProviderConfig:
    """One configured external identity provider.

    Only the parameters of the declared ``kind`` are used:

    - STATIC_TOKEN: ``api_token`` (sent as ``"{token_scheme} {api_token}"``)
    - OAUTH2_CLIENT_CREDENTIALS: ``tenant_id``, ``client_id``, ``client_secret``,
      optional ``token_url`` and ``scope``
    - SERVICE_ACCOUNT_JWT: ``service_account_email``, ``private_key_path``,
      optional ``token_url``, ``scope`` and ``subject``
    """
    name: str
    kind: ProviderKind
    base_url: str
    enabled: bool = True

    api_token: str = ""
    token_scheme: str = "SSWS"

    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""

    service_account_email: str = ""
    private_key_path: str = ""
    subject: str = ""

    token_url: str = ""
    scope: str = ""


@dataclass
class SyncOutcome:
    """Result of pushing one resource to one provider."""
    provider: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
