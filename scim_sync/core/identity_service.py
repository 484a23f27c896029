"""
Identity lifecycle services.

In-memory create/read/update/soft-delete repositories for users and groups.
Every lifecycle event is pushed to the external providers through the
SyncDispatcher before the call returns.

Architecture:
    caller ──> UserService / GroupService ──> SyncDispatcher ──> providers

Features:
    - Stable SCIM id assigned exactly once, at creation
    - Identity (id, scim_id, created_at) re-attached on every update
    - Soft delete: records are deactivated, never removed
    - Standardized error handling via ScimError
"""

from __future__ import annotations
import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from scim_sync.core import validators
from scim_sync.core.models import Group, User, UserGroup, utcnow
from scim_sync.core.scim_transformer import ScimTransformer
from scim_sync.core.sync_dispatcher import SyncDispatcher

logger = logging.getLogger(__name__)

SCIM_ERROR_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:Error"

T = TypeVar("T")


class ScimError(Exception):
    """SCIM protocol error with HTTP status and optional scimType."""

    def __init__(self, status: int, detail: str, scim_type: Optional[str] = None):
        self.status = status
        self.detail = detail
        self.scim_type = scim_type
        super().__init__(detail)

    def to_dict(self) -> dict:
        """Convert to SCIM error response format."""
        error_dict = {
            "schemas": [SCIM_ERROR_SCHEMA],
            "status": str(self.status),
            "detail": self.detail
        }
        if self.scim_type:
            error_dict["scimType"] = self.scim_type
        return error_dict


@dataclass
class ProvisioningResult(Generic[T]):
    entity: T
    synced: bool


def _validate_user(user: User) -> None:
    try:
        user.user_name = validators.validate_username(user.user_name)
        user.email = validators.validate_email(user.email)
        user.first_name = validators.validate_name(user.first_name, "name.givenName")
        user.last_name = validators.validate_name(user.last_name, "name.familyName")
        user.phone_number = validators.validate_phone(user.phone_number)
    except ValueError as exc:
        raise ScimError(400, str(exc), "invalidValue") from exc


class UserService:
    """User repository that syncs every change to the configured providers."""

    def __init__(self, dispatcher: Optional[SyncDispatcher] = None):
        self.dispatcher = dispatcher
        self._users: dict[int, User] = {}
        self._next_id = 1

    def _sync(self, user: User, operation: str) -> bool:
        if self.dispatcher is None:
            return False
        synced = self.dispatcher.sync_user(user, operation)
        if not synced:
            logger.warning(f"User {user.email} {operation} was not accepted by any provider")
        return synced

    # Reads ---------------------------------------------------------------
    def list_users(self) -> list[User]:
        active = [u for u in self._users.values() if u.is_active]
        return sorted(active, key=lambda u: (u.first_name, u.last_name))

    def get_user(self, user_id: int) -> Optional[User]:
        user = self._users.get(user_id)
        return user if user and user.is_active else None

    def get_user_by_scim_id(self, scim_id: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.scim_id == scim_id and u.is_active), None)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = (email or "").strip().lower()
        return next((u for u in self._users.values() if u.email == email and u.is_active), None)

    def _user_name_taken(self, user_name: str, exclude_id: Optional[int] = None) -> bool:
        return any(
            u.user_name == user_name and u.is_active and u.id != exclude_id
            for u in self._users.values()
        )

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        return any(u.email == email and u.is_active and u.id != exclude_id for u in self._users.values())

    # Writes --------------------------------------------------------------
    def create_user(self, user: User) -> ProvisioningResult[User]:
        """Store a new user, assign its stable SCIM id and sync it.

        Raises:
            ScimError: 400 on invalid fields, 409 on duplicate userName or email
        """
        user = copy.deepcopy(user)
        _validate_user(user)
        if self._user_name_taken(user.user_name):
            raise ScimError(409, f"userName {user.user_name} already exists", "uniqueness")
        if self._email_taken(user.email):
            raise ScimError(409, f"email {user.email} already exists", "uniqueness")

        user.id = self._next_id
        self._next_id += 1
        user.scim_id = str(uuid.uuid4())
        user.created_at = utcnow()
        user.updated_at = None
        user.is_active = True
        self._users[user.id] = user

        logger.info(f"User created: {user.email}")
        return ProvisioningResult(copy.deepcopy(user), self._sync(user, "create"))

    def update_user(self, user: User) -> ProvisioningResult[User]:
        """Replace a stored user's attributes and sync the change.

        The stored ``scim_id`` and ``created_at`` always win over the values
        carried by ``user``.

        Raises:
            ScimError: 404 if unknown, 400 on invalid fields, 409 when another
                active user already has the userName or email
        """
        existing = self.get_user(user.id) if user.id is not None else None
        if existing is None:
            raise ScimError(404, f"User {user.id} not found")

        updated = copy.deepcopy(user)
        _validate_user(updated)
        if self._user_name_taken(updated.user_name, exclude_id=existing.id):
            raise ScimError(409, f"userName {updated.user_name} already exists", "uniqueness")
        if self._email_taken(updated.email, exclude_id=existing.id):
            raise ScimError(409, f"email {updated.email} already exists", "uniqueness")

        updated.id = existing.id
        updated.scim_id = existing.scim_id
        updated.created_at = existing.created_at
        updated.updated_at = utcnow()
        self._users[updated.id] = updated

        logger.info(f"User updated: {updated.email}")
        return ProvisioningResult(copy.deepcopy(updated), self._sync(updated, "update"))

    def replace_user_from_scim(self, scim_id: str, payload: dict[str, Any]) -> ProvisioningResult[User]:
        """Apply an inbound SCIM User document to the user with ``scim_id``."""
        existing = self.get_user_by_scim_id(scim_id)
        if existing is None:
            raise ScimError(404, f"User {scim_id} not found")

        incoming = ScimTransformer.scim_to_user(payload)
        incoming.id = existing.id
        incoming.scim_id = existing.scim_id
        incoming.created_at = existing.created_at
        return self.update_user(incoming)

    def delete_user(self, user_id: int) -> ProvisioningResult[User]:
        """Soft-delete a user and sync the deletion."""
        user = self._users.get(user_id)
        if user is None or not user.is_active:
            raise ScimError(404, f"User {user_id} not found")

        user.is_active = False
        user.updated_at = utcnow()

        logger.info(f"User deleted: {user.email}")
        return ProvisioningResult(copy.deepcopy(user), self._sync(user, "delete"))


class GroupService:
    """Group repository; membership is kept locally, the group itself is synced."""

    def __init__(self, dispatcher: Optional[SyncDispatcher] = None, users: Optional[UserService] = None):
        self.dispatcher = dispatcher
        self.users = users
        self._groups: dict[int, Group] = {}
        self._next_id = 1

    def _sync(self, group: Group, operation: str) -> bool:
        if self.dispatcher is None:
            return False
        return self.dispatcher.sync_group(group, operation)

    def list_groups(self) -> list[Group]:
        active = [g for g in self._groups.values() if g.is_active]
        return sorted(active, key=lambda g: g.display_name)

    def get_group(self, group_id: int) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group if group and group.is_active else None

    def _display_name_taken(self, display_name: str, exclude_id: Optional[int] = None) -> bool:
        return any(
            g.display_name == display_name and g.is_active and g.id != exclude_id
            for g in self._groups.values()
        )

    def create_group(self, group: Group) -> ProvisioningResult[Group]:
        group = copy.deepcopy(group)
        try:
            group.display_name = validators.validate_name(
                group.display_name, "displayName", validators.DISPLAY_NAME_MAX_LENGTH
            )
        except ValueError as exc:
            raise ScimError(400, str(exc), "invalidValue") from exc
        if self._display_name_taken(group.display_name):
            raise ScimError(409, f"displayName {group.display_name} already exists", "uniqueness")

        group.id = self._next_id
        self._next_id += 1
        group.scim_id = str(uuid.uuid4())
        group.created_at = utcnow()
        group.updated_at = None
        group.is_active = True
        group.members = []
        self._groups[group.id] = group

        logger.info(f"Group created: {group.display_name}")
        return ProvisioningResult(copy.deepcopy(group), self._sync(group, "create"))

    def update_group(self, group: Group) -> ProvisioningResult[Group]:
        existing = self.get_group(group.id) if group.id is not None else None
        if existing is None:
            raise ScimError(404, f"Group {group.id} not found")
        try:
            display_name = validators.validate_name(
                group.display_name, "displayName", validators.DISPLAY_NAME_MAX_LENGTH
            )
        except ValueError as exc:
            raise ScimError(400, str(exc), "invalidValue") from exc
        if self._display_name_taken(display_name, exclude_id=existing.id):
            raise ScimError(409, f"displayName {display_name} already exists", "uniqueness")

        existing.display_name = display_name
        existing.description = group.description
        existing.external_id = group.external_id
        existing.updated_at = utcnow()

        logger.info(f"Group updated: {existing.display_name}")
        return ProvisioningResult(copy.deepcopy(existing), self._sync(existing, "update"))

    def delete_group(self, group_id: int) -> ProvisioningResult[Group]:
        group = self.get_group(group_id)
        if group is None:
            raise ScimError(404, f"Group {group_id} not found")
        group.is_active = False
        group.updated_at = utcnow()

        logger.info(f"Group deleted: {group.display_name}")
        return ProvisioningResult(copy.deepcopy(group), self._sync(group, "delete"))

    def add_member(self, group_id: int, user_id: int) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise ScimError(404, f"Group {group_id} not found")
        if self.users is not None and self.users.get_user(user_id) is None:
            raise ScimError(404, f"User {user_id} not found")
        if not any(m.user_id == user_id for m in group.members):
            group.members.append(UserGroup(user_id=user_id, group_id=group_id))
        return copy.deepcopy(group)

    def remove_member(self, group_id: int, user_id: int) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise ScimError(404, f"Group {group_id} not found")
        group.members = [m for m in group.members if m.user_id != user_id]
        return copy.deepcopy(group)
