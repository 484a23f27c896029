"""Maps a lifecycle operation onto a SCIM endpoint, HTTP method and body."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

USERS = "Users"
GROUPS = "Groups"


@dataclass(frozen=True)
class ProviderRequest:
    method: str
    url: str
    body: Optional[Dict[str, Any]] = None


def build_request(
    operation: str,
    base_url: str,
    resource_kind: str,
    scim_id: Optional[str],
    body: Optional[Dict[str, Any]],
) -> ProviderRequest:
    """Build the outbound request for one provider.

    Args:
        operation: "create", "update" or "delete" (case-insensitive)
        base_url: Provider SCIM base URL
        resource_kind: "Users" or "Groups"
        scim_id: Stable SCIM id of the resource
        body: Serialised SCIM resource

    Returns:
        ProviderRequest. Unknown operations fall back to create (POST to the
        collection). DELETE never carries a body.
    """
    collection = f"{base_url.rstrip('/')}/{resource_kind}"
    op = (operation or "").lower()

    if op == "update":
        return ProviderRequest("PUT", f"{collection}/{scim_id}", body)
    if op == "delete":
        return ProviderRequest("DELETE", f"{collection}/{scim_id}", None)
    return ProviderRequest("POST", collection, body)
