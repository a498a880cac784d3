# mediashelf/models/legacy.py
"""
Normalize-on-load step for account records.

Account records written by older releases can be missing permission fields
that were added later, or still carry renamed fields. Every such rule lives
here, so a new migration is one more entry rather than another branch in the
model constructor.

Two entry points share the same rules:
  - normalize_user_record(raw): a raw (camelCase) record dict, e.g. an import
    of an old JSON database, turned into keyword arguments for `User`.
  - normalize_loaded_user(user): a `User` row just read from the store.
"""
import logging
import uuid
from typing import TYPE_CHECKING, Any

from mediashelf.core.clock import from_millis, utcnow
from mediashelf.models.permissions import PermissionSet, Role

if TYPE_CHECKING:
    from mediashelf.models.user import User

logger = logging.getLogger(__name__)

# Permission fields added after the first release. Records written before
# they existed are read as permissive.
MISSING_PERMISSION_DEFAULTS: dict[str, bool] = {
    "accessAllLibraries": True,  # library scoping, v1.4.14
    "accessAllTags": True,  # tag scoping, v2.0
    "accessExplicitContent": True,  # explicit content filter, v2.0.18
}

# itemTagsAccessible was renamed to itemTagsSelected in v2.2.20
LEGACY_TAGS_KEY = "itemTagsAccessible"


def normalize_permissions(role: str, raw: dict[str, Any] | None) -> PermissionSet:
    """
    Fill permission fields missing from `raw`.

    No stored permissions at all means the account predates the permission
    model: it gets the defaults for its role.
    """
    if not raw:
        return PermissionSet.defaults_for(role)

    data = dict(raw)
    for key, default in MISSING_PERMISSION_DEFAULTS.items():
        if data.get(key) is None:
            data[key] = default

    # Upload was added v1.1.13; root always has it.
    if role == Role.ROOT and not data.get("upload"):
        data["upload"] = True

    return PermissionSet.from_record(data)


def adopt_legacy_tags(
    permissions: PermissionSet,
    item_tags_selected: list[str],
    legacy_tags: list[str] | None,
) -> tuple[PermissionSet, list[str]]:
    """
    A non-empty `itemTagsAccessible` replaces the selected tags. The old field
    was always an allow-list, so `selectedTagsNotAccessible` is reset.
    """
    if not legacy_tags:
        return permissions, item_tags_selected
    permissions = permissions.with_changes({"selectedTagsNotAccessible": False})
    return permissions, list(legacy_tags)


def _valid_media_progress(entries: list[dict] | None) -> list[dict]:
    return [dict(e) for e in entries or [] if e.get("id")]


def _valid_bookmarks(entries: list[dict] | None) -> list[dict]:
    return [dict(b) for b in entries or [] if isinstance(b.get("libraryItemId"), str)]


def normalize_user_record(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Turn a raw account record into `User` keyword arguments.

    Accepts both the current key names and the legacy ones
    (`pash`, `type`, `authOpenIDSub`, `itemTagsAccessible`).
    """
    role = raw.get("role") or raw.get("type") or Role.USER.value
    is_root = role == Role.ROOT

    permissions = normalize_permissions(role, raw.get("permissions"))
    permissions, item_tags_selected = adopt_legacy_tags(
        permissions,
        list(raw.get("itemTagsSelected") or []),
        raw.get(LEGACY_TAGS_KEY),
    )

    is_active = raw.get("isActive")
    extra_data = dict(raw.get("extraData") or {})

    return {
        "id": raw.get("id") or str(uuid.uuid4()),
        "old_user_id": raw.get("oldUserId"),
        "username": raw["username"],
        "email": raw.get("email") or None,
        "credential_hash": raw.get("credentialHash") or raw.get("pash"),
        "role": role,
        "token": raw.get("token"),
        "is_active": True if is_active is None or is_root else bool(is_active),
        "is_locked": False if is_root else bool(raw.get("isLocked")),
        "last_seen": from_millis(raw.get("lastSeen")),
        "created_at": from_millis(raw.get("createdAt")) or utcnow(),
        "permissions": permissions.to_record(),
        "libraries_accessible": list(raw.get("librariesAccessible") or []),
        "item_tags_selected": item_tags_selected,
        "series_hide_from_continue_listening": list(
            raw.get("seriesHideFromContinueListening") or []
        ),
        "media_progress": _valid_media_progress(raw.get("mediaProgress")),
        "bookmarks": _valid_bookmarks(raw.get("bookmarks")),
        "external_identity_sub": raw.get("authOpenIDSub")
        or extra_data.pop("authOpenIDSub", None),
        "extra_data": extra_data,
    }


def normalize_loaded_user(user: "User") -> "User":
    """
    Apply the same rules to a row read from the store, in place.

    Rows are normally written already normalized; this only changes
    something for rows that predate a migration.
    """
    permissions = normalize_permissions(user.role, user.permissions)

    legacy_tags = (user.extra_data or {}).get(LEGACY_TAGS_KEY)
    if legacy_tags:
        permissions, user.item_tags_selected = adopt_legacy_tags(
            permissions, user.item_tags_selected, legacy_tags
        )
        user.extra_data = {
            k: v for k, v in user.extra_data.items() if k != LEGACY_TAGS_KEY
        }
        logger.info(f"Migrated legacy tag selection for user {user.username}")

    if permissions.to_record() != user.permissions:
        user.permissions = permissions.to_record()

    if user.role == Role.ROOT:
        user.is_active = True
        user.is_locked = False

    return user
