# mediashelf/services/update_policy.py
import logging
from dataclasses import dataclass
from typing import Any

from sqlmodel import Session

from mediashelf.core.errors import Conflict, Forbidden, Invalid
from mediashelf.models.permissions import PermissionSet, Role, is_known_permission
from mediashelf.models.user import User
from mediashelf.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

# Accepted only when the new value is truthy; they can never be cleared.
REQUIRED_FIELDS = ("credential_hash", "role", "username", "email")

# Explicit booleans, False included.
FLAG_FIELDS = ("is_active", "is_locked")

SCOPING_FIELDS = ("libraries_accessible", "item_tags_selected")

UPDATABLE_FIELDS = frozenset(
    REQUIRED_FIELDS
    + FLAG_FIELDS
    + SCOPING_FIELDS
    + ("series_hide_from_continue_listening", "permissions")
)


@dataclass(frozen=True)
class UpdateOutcome:
    """
    Result of applying an update payload.

    Truthy iff at least one field changed value. `regenerate_token` is set
    when the username changed, since the access token embeds it.
    """

    changed: bool
    regenerate_token: bool = False

    def __bool__(self) -> bool:
        return self.changed


def _same_members(a: list[str], b: list[str]) -> bool:
    return set(a) == set(b)


def _scoped_list(
    current: list[str],
    requested: list[str] | None,
    all_access: bool,
) -> list[str] | None:
    """
    New value for a scoping allow-list, or None when it stays as stored.

    All-access forces the list empty. Otherwise an omitted list is left
    alone, a non-empty list replaces a list with different members, and an
    empty list clears a non-empty one.
    """
    if all_access:
        return [] if current else None
    if requested is None:
        return None
    if requested:
        if _same_members(requested, current):
            return None
        return list(dict.fromkeys(requested))
    return [] if current else None


class UserUpdatePolicy:
    """
    Validates and applies a partial update to one account.

    Rules:
      - only root may update the root account
      - credential_hash / role / username / email ignore falsy values
      - is_active / is_locked accept any explicit boolean
      - plaintext passwords are rejected; hash them first
      - a username change must not collide with another account
      - scoping lists are forced empty while the matching "access all" grant
        is on

    Either every change is applied or none is: all checks run against the
    current state before the first field is written.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def apply_update(
        self,
        session: Session,
        user: User,
        payload: dict[str, Any],
        acting_user: User,
    ) -> UpdateOutcome:
        if user.is_root and not acting_user.is_root:
            logger.error(
                f"User {acting_user.username} attempted to update the root account"
            )
            raise Forbidden()

        changes = self.plan_update(session, user, payload)
        for field, value in changes.items():
            setattr(user, field, value)

        return UpdateOutcome(
            changed=bool(changes),
            regenerate_token="username" in changes,
        )

    def plan_update(
        self,
        session: Session,
        user: User,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Compute {field: new value} for every field that would change."""
        if "password" in payload:
            raise Invalid("Passwords must be hashed before an update is applied")
        unknown = set(payload) - UPDATABLE_FIELDS
        if unknown:
            raise Invalid(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}

        for field in REQUIRED_FIELDS:
            value = payload.get(field)
            if value and value != getattr(user, field):
                changes[field] = value

        if "role" in changes:
            changes["role"] = self._check_role(user, changes["role"])

        if "username" in changes:
            existing = self.repo.get_by_username(session, changes["username"])
            if existing is not None and existing.id != user.id:
                logger.warning(
                    f"Username change for {user.username} rejected: "
                    f"'{changes['username']}' is taken"
                )
                raise Conflict()

        for field in FLAG_FIELDS:
            value = payload.get(field)
            if value is None:
                continue
            value = bool(value)
            if user.is_root and value != (field == "is_active"):
                raise Invalid("The root account cannot be deactivated or locked")
            if value != getattr(user, field):
                changes[field] = value

        hidden = payload.get("series_hide_from_continue_listening")
        if isinstance(hidden, list):
            current = user.series_hide_from_continue_listening or []
            if not _same_members(hidden, current):
                changes["series_hide_from_continue_listening"] = list(dict.fromkeys(hidden))

        current_permissions = user.permission_set
        permissions = self._merge_permissions(current_permissions, payload.get("permissions"))

        libraries = _scoped_list(
            user.libraries_accessible or [],
            payload.get("libraries_accessible"),
            permissions.access_all_libraries,
        )
        if libraries is not None:
            changes["libraries_accessible"] = libraries

        tags = _scoped_list(
            user.item_tags_selected or [],
            payload.get("item_tags_selected"),
            permissions.access_all_tags,
        )
        if tags is not None:
            changes["item_tags_selected"] = tags
        if permissions.access_all_tags or tags == []:
            permissions = permissions.with_changes({"selectedTagsNotAccessible": False})

        if permissions != current_permissions:
            changes["permissions"] = permissions.to_record()

        return changes

    def _check_role(self, user: User, role: str) -> str:
        try:
            role = Role(role).value
        except ValueError:
            raise Invalid(f"Unknown role: {role}") from None
        if user.is_root and role != Role.ROOT:
            raise Invalid("The root account cannot change role")
        return role

    def _merge_permissions(
        self,
        current: PermissionSet,
        requested: dict[str, Any] | None,
    ) -> PermissionSet:
        """Overwrite each supplied grant that differs from the current one."""
        if not requested:
            return current

        diffs: dict[str, bool] = {}
        for key, value in requested.items():
            if not is_known_permission(key):
                raise Invalid(f"Unknown permission: {key}")
            if not isinstance(value, bool):
                raise Invalid(f"Permission {key} must be a boolean")
            if current.get(key) != value:
                diffs[key] = value
        return current.with_changes(diffs) if diffs else current
