"""SCIM 2.0 ↔ local identity transformations.

This module provides bidirectional transformations between local User/Group
records and SCIM 2.0 resources as defined in RFC 7643.

Usage:
    # Local → SCIM
    scim_user = ScimTransformer.user_to_scim(user, base_url="/scim/v2")

    # SCIM → Local
    user = ScimTransformer.scim_to_user(scim_user)
"""
from __future__ import annotations
import datetime
from typing import Dict, Any, Optional, Union

from scim_sync.core.models import Group, User, utcnow

SCIM_USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
SCIM_GROUP_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:Group"


def format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    """Render a datetime as ISO-8601 UTC with a trailing ``Z``."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    value = value.astimezone(datetime.timezone.utc)
    return value.replace(tzinfo=None).isoformat() + "Z"


def parse_timestamp(value: Union[str, datetime.datetime, None]) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Malformed values return None rather than raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def _meta(resource_type: str, created: datetime.datetime, updated: Optional[datetime.datetime],
          location: str, version: Optional[str]) -> Dict[str, Any]:
    meta = {
        "resourceType": resource_type,
        "created": format_timestamp(created),
        "lastModified": format_timestamp(updated or created),
        "location": location,
    }
    if version:
        meta["version"] = version
    return meta


class ScimTransformer:
    """Bidirectional transformer for SCIM/local user and group representations."""

    @staticmethod
    def user_to_scim(user: User, base_url: str = "/scim/v2") -> Dict[str, Any]:
        """Convert a local user to a SCIM 2.0 User resource.

        Args:
            user: Local user record
            base_url: SCIM base path used for ``meta.location``

        Returns:
            SCIM 2.0 User resource (JSON-serialisable dict)

        Example:
            >>> user = User(user_name="alice", first_name="Alice", last_name="Smith",
            ...             email="alice@example.com", scim_id="abc123")
            >>> scim_user = ScimTransformer.user_to_scim(user)
            >>> scim_user["meta"]["location"]
            '/scim/v2/Users/abc123'
        """
        scim_id = user.scim_id or ""

        scim_resource: Dict[str, Any] = {
            "schemas": [SCIM_USER_SCHEMA],
            "id": scim_id,
            "userName": user.user_name,
            "active": user.is_active,
            "name": {
                "givenName": user.first_name,
                "familyName": user.last_name,
                "formatted": f"{user.first_name} {user.last_name}",
            },
            "emails": [
                {
                    "value": user.email,
                    "type": "work",
                    "primary": True,
                }
            ],
            "meta": _meta(
                "User",
                user.created_at,
                user.updated_at,
                f"{base_url.rstrip('/')}/Users/{scim_id}",
                user.meta_version,
            ),
        }

        if user.external_id:
            scim_resource["externalId"] = user.external_id
        if user.job_title:
            scim_resource["title"] = user.job_title
        if user.department:
            scim_resource["department"] = user.department

        if user.phone_number:
            scim_resource["phoneNumbers"] = [
                {
                    "value": user.phone_number,
                    "type": "work",
                }
            ]

        return scim_resource

    @staticmethod
    def scim_to_user(scim_user: Dict[str, Any]) -> User:
        """Convert a SCIM 2.0 User resource to a local user.

        The result carries no local ``id``; callers updating an existing user
        re-attach ``id``, ``scim_id`` and ``created_at`` themselves.
        A ``lastModified`` equal to ``created`` leaves ``updated_at`` unset.

        Args:
            scim_user: SCIM 2.0 User resource

        Returns:
            Local user record

        Example:
            >>> user = ScimTransformer.scim_to_user({
            ...     "userName": "bob",
            ...     "emails": [{"value": "bob@example.com", "primary": True}],
            ... })
            >>> user.email
            'bob@example.com'
        """
        name = scim_user.get("name") or {}
        if not isinstance(name, dict):
            name = {}
        meta = scim_user.get("meta") or {}
        if not isinstance(meta, dict):
            meta = {}

        created = parse_timestamp(meta.get("created"))
        last_modified = parse_timestamp(meta.get("lastModified"))

        return User(
            scim_id=scim_user.get("id"),
            external_id=scim_user.get("externalId"),
            user_name=scim_user.get("userName") or "",
            first_name=name.get("givenName") or "",
            last_name=name.get("familyName") or "",
            email=_primary_email(scim_user.get("emails")),
            phone_number=_first_value(scim_user.get("phoneNumbers")),
            job_title=scim_user.get("title"),
            department=scim_user.get("department"),
            is_active=scim_user.get("active", True),
            created_at=created or utcnow(),
            updated_at=None if last_modified == created else last_modified,
            meta_location=meta.get("location"),
            meta_resource_type=meta.get("resourceType"),
            meta_last_modified=last_modified,
            meta_version=meta.get("version"),
        )

    @staticmethod
    def group_to_scim(group: Group, base_url: str = "/scim/v2") -> Dict[str, Any]:
        """Convert a local group to a SCIM 2.0 Group resource (display name only)."""
        scim_id = group.scim_id or ""
        scim_resource: Dict[str, Any] = {
            "schemas": [SCIM_GROUP_SCHEMA],
            "id": scim_id,
            "displayName": group.display_name,
            "meta": _meta(
                "Group",
                group.created_at,
                group.updated_at,
                f"{base_url.rstrip('/')}/Groups/{scim_id}",
                group.meta_version,
            ),
        }
        if group.external_id:
            scim_resource["externalId"] = group.external_id
        return scim_resource

    @staticmethod
    def scim_to_group(scim_group: Dict[str, Any]) -> Group:
        """Convert a SCIM 2.0 Group resource to a local group. Members are ignored."""
        meta = scim_group.get("meta") or {}
        if not isinstance(meta, dict):
            meta = {}
        created = parse_timestamp(meta.get("created"))
        last_modified = parse_timestamp(meta.get("lastModified"))

        return Group(
            scim_id=scim_group.get("id"),
            external_id=scim_group.get("externalId"),
            display_name=scim_group.get("displayName") or "",
            created_at=created or utcnow(),
            updated_at=None if last_modified == created else last_modified,
            meta_location=meta.get("location"),
            meta_resource_type=meta.get("resourceType"),
            meta_last_modified=last_modified,
            meta_version=meta.get("version"),
        )


def _primary_email(emails: Any) -> str:
    """Pick the first email flagged primary, else the first email."""
    if not emails or not isinstance(emails, list):
        return ""
    entries = [e for e in emails if isinstance(e, dict)]
    primary = next((e for e in entries if e.get("primary")), None)
    if primary is None and entries:
        primary = entries[0]
    if primary is None:
        return ""
    return primary.get("value") or ""


def _first_value(items: Any) -> Optional[str]:
    if not items or not isinstance(items, list):
        return None
    first = items[0]
    if isinstance(first, dict):
        return first.get("value")
    return None
