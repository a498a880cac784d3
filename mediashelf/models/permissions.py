# mediashelf/models/permissions.py
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """
    Account tier.

    Exactly one account in the system holds "root". Roles are a closed set;
    every capability is derived from (role, permissions, is_active, is_locked),
    never from a role hierarchy of classes.
    """

    ROOT = "root"
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


ADMIN_ROLES = frozenset({Role.ROOT.value, Role.ADMIN.value})


class PermissionSet(BaseModel):
    """
    Fine-grained grants for one account.

    Immutable value: change it with `with_changes(...)` and store the copy.
    Serialized with camelCase keys (`accessAllLibraries`, ...), the format
    stored in the `users.permissions` JSON column and sent to clients.

    `selected_tags_not_accessible` only matters while tag scoping is active:
    it flips `item_tags_selected` from an allow-list to a deny-list.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    download: bool = False
    update: bool = False
    delete: bool = False
    upload: bool = False
    access_all_libraries: bool = True
    access_all_tags: bool = True
    access_explicit_content: bool = True
    selected_tags_not_accessible: bool = False

    @classmethod
    def defaults_for(cls, role: Role | str) -> "PermissionSet":
        """Baseline grants for a freshly created account of `role`."""
        role = Role(role).value
        return cls(
            download=True,
            update=role in ADMIN_ROLES,
            delete=role == Role.ROOT,
            upload=role in ADMIN_ROLES,
            access_all_libraries=True,
            access_all_tags=True,
            access_explicit_content=True,
        )

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "PermissionSet":
        return cls.model_validate(data)

    def to_record(self) -> dict[str, bool]:
        return self.model_dump(by_alias=True)

    def get(self, key: str) -> bool:
        """Look up a grant by its wire (camelCase) or attribute name."""
        return getattr(self, _attribute_name(key))

    def with_changes(self, changes: dict[str, bool]) -> "PermissionSet":
        """Return a copy with the given grants (wire or attribute names) replaced."""
        return self.model_copy(
            update={_attribute_name(k): bool(v) for k, v in changes.items()}
        )


_WIRE_TO_ATTRIBUTE = {
    (field.alias or name): name for name, field in PermissionSet.model_fields.items()
}


def _attribute_name(key: str) -> str:
    if key in PermissionSet.model_fields:
        return key
    try:
        return _WIRE_TO_ATTRIBUTE[key]
    except KeyError:
        raise KeyError(f"Unknown permission: {key}") from None


def is_known_permission(key: str) -> bool:
    return key in _WIRE_TO_ATTRIBUTE or key in PermissionSet.model_fields


def has_capability(
    role: Role | str,
    permissions: PermissionSet,
    is_active: bool,
    is_locked: bool,
    grant: str,
) -> bool:
    """
    Effective capability for one grant.

    Inactive or locked accounts have no capabilities at all. The root account
    can never be inactive or locked and always keeps upload.
    """
    if role == Role.ROOT:
        if grant == "upload":
            return True
    elif not is_active or is_locked:
        return False
    return permissions.get(grant)
